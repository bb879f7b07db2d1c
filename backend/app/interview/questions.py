from core.config import STATIC_QUESTION_LIMIT


# ---------- STATIC BASE QUESTIONS ----------

BASE_QUESTIONS = [
    "Tell me about yourself and your professional background.",
    "What are your strongest technical skills?",
    "Describe a challenging project you worked on and how you approached it.",
    "Tell me about a time you disagreed with a teammate. How did you resolve it?",
    "How do you prioritize when several deadlines collide?",
    "Describe a mistake you made at work and what you learned from it.",
    "Where do you see your career going in the next few years?",
]

ROLE_QUESTIONS = {
    "backend": [
        "Walk me through how you would design a rate limiter for a public API.",
        "How do you find and fix a slow database query in production?",
    ],
    "frontend": [
        "How do you keep a large UI codebase fast and maintainable?",
        "Explain how you would make a form accessible to screen reader users.",
    ],
    "data": [
        "How do you validate that a data pipeline produced correct results?",
        "Describe how you would explain a model's results to a non-technical stakeholder.",
    ],
    "devops": [
        "Explain how you would design a CI/CD pipeline for a new service.",
        "How do you handle a production incident from alert to post-mortem?",
    ],
}


def generate_questions(role: str = "general", limit: int = STATIC_QUESTION_LIMIT) -> list[str]:
    """Ordered, deterministic question list for the scripted interviewer."""
    base = list(BASE_QUESTIONS)

    normalized_role = str(role or "").lower()
    role_specific = []
    for key, questions in ROLE_QUESTIONS.items():
        if key in normalized_role:
            role_specific.extend(questions)

    # role questions go right after the opener
    merged = base[:1] + role_specific + base[1:]
    return merged[:max(1, int(limit))]
