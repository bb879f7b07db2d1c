def build_greeting_prompt(duration_minutes: float, company_prompt: str = "") -> str:
    return f"""
You are a professional interviewer. Provide a brief, friendly introduction.
Do not ask a question yet.
Mention that the interview will last about {duration_minutes:g} minutes and ask
whether the candidate is ready to begin.
{company_prompt}

Return STRICT JSON only:
{{"text": "the greeting"}}
"""
