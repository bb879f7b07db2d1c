COMPANY_MODES = {
    "general": {
        "label": "General",
        "interview_focus": "well-structured answers with concrete examples",
        "tone": "professional and friendly",
    },
    "amazon": {
        "label": "Amazon",
        "interview_focus": "ownership stories tied to the Leadership Principles and hard numbers",
        "tone": "direct, probing for metrics",
    },
    "google": {
        "label": "Google",
        "interview_focus": "how the candidate reasons through open problems out loud",
        "tone": "curious and analytical",
    },
    "meta": {
        "label": "Meta",
        "interview_focus": "shipping under ambiguity and the impact of past launches",
        "tone": "fast-paced and impact-oriented",
    },
    "startup": {
        "label": "Startup",
        "interview_focus": "ownership, speed of execution, and wearing many hats",
        "tone": "informal but demanding",
    },
}


def normalize_company_mode(mode: str | None) -> str:
    key = str(mode or "general").strip().lower()
    return key if key in COMPANY_MODES else "general"


def list_company_modes() -> list[dict]:
    return [
        {"key": key, "label": value["label"]}
        for key, value in COMPANY_MODES.items()
    ]


def get_company_mode_prompt(mode: str | None) -> str:
    key = normalize_company_mode(mode)
    if key == "general":
        return ""
    config = COMPANY_MODES[key]
    return (
        f"Company interview style: {config['label']}. "
        f"Focus on {config['interview_focus']}. "
        f"Keep the tone {config['tone']}."
    )
