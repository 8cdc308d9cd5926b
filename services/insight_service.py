"""Insight agent: a single blocking generator call that reads the last
month of moods and returns a small structured record (summary, insight,
advice) for the dashboard.

Free text instead of JSON degrades to a fallback record; it never aborts
the request.
"""

import json
from datetime import timedelta

from loguru import logger

from services.errors import UpstreamGenerationError
from services.models import InsightReport
from services.timestamps import utcnow

INSIGHT_SYSTEM_PROMPT = """\
You are Tala, a compassionate mental wellness support assistant.
Your task is to analyze the user's mood entries for the past 30 days and provide:
1. A brief summary of their overall mood pattern.
2. An empathetic insight about their emotional trends.
3. Gentle, supportive advice for their well-being.
Return ONLY a JSON object with these fields:

{{
  "summary": "overall mood pattern",
  "insight": "empathetic observation about their emotional trends",
  "advice": "gentle, supportive, non-clinical advice"
}}

Here are the user's recent mood entries:
{entries}\
"""

INSIGHT_PROMPT = (
    "Analyze the user's mood data and provide a summary, insight, and advice as described."
)

UNSTRUCTURED_SUMMARY = "AI could not provide a structured summary."
UNAVAILABLE_INSIGHT = "Unable to generate insight at this time."


def parse_insight(response):
    """Parse the generator's reply, handling potential markdown wrapping."""
    text = (response or "").strip()
    if text.startswith("```"):
        lines = text.split("\n")
        text = "\n".join(lines[1:-1]) if len(lines) > 2 else text.strip("`")

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        data = None

    if not isinstance(data, dict):
        # Fallback if model doesn't produce valid JSON
        return InsightReport(summary=UNSTRUCTURED_SUMMARY, insight=response or "", advice="")

    return InsightReport(
        summary=str(data.get("summary") or ""),
        insight=str(data.get("insight") or ""),
        advice=str(data.get("advice") or ""),
    )


def generate_insight(store, generator, user_id, days=30, clock=utcnow):
    """Run the insight call. Returns an InsightReport, never raises for bad output."""
    end = clock()
    entries = store.moods_between(user_id, end - timedelta(days=days), end)
    recent = [
        e.model_dump(mode="json", include={"mood", "timestamp"}) for e in reversed(entries)
    ]
    system = INSIGHT_SYSTEM_PROMPT.format(entries=json.dumps(recent))

    try:
        response = generator.generate(INSIGHT_PROMPT, system)
    except UpstreamGenerationError as exc:
        logger.warning(f"Insight generation unavailable for user {user_id}: {exc}")
        return InsightReport(insight=UNAVAILABLE_INSIGHT)

    return parse_insight(response)
