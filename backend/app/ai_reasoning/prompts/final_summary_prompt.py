import json


def build_final_summary_prompt(request: dict, resume_context: str = "") -> str:
    """
    Build the prompt used to score the interview.
    This is called ONCE at session end.
    """
    transcript = json.dumps(request.get("priorTurns") or [], ensure_ascii=False, indent=1)

    return f"""
You are a senior interviewer giving final feedback to a candidate after a mock interview.

Judge clarity, confidence, and relevance of the candidate's answers.

Rules:
- Be professional and encouraging
- Give 2-4 items per list
- Do NOT mention AI, models, or internal metrics
- Do NOT repeat the raw transcript

Resume analysis:
{resume_context or "Not provided."}

Transcript:
{transcript}

Return STRICT JSON only in this format:
{{
  "overallScore": 0-100,
  "confidenceLevel": "Low | Medium | High",
  "strengths": ["string"],
  "improvements": ["string"],
  "suggestions": ["string"]
}}
"""
