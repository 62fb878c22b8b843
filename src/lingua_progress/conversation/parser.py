"""Split raw tutor output into the reply and its analysis block."""

import json
import re

import structlog

from lingua_progress.errors import MalformedAnalysis
from lingua_progress.models.analysis import TutorAnalysis, TutorReply

logger = structlog.get_logger()

_RESPONSE = re.compile(r"RESPONSE:(.*?)(?=ANALYSIS:|$)", re.DOTALL)
_ANALYSIS = re.compile(r"ANALYSIS:(.*)", re.DOTALL)
_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def extract_analysis(section: str) -> TutorAnalysis:
    """Parse the JSON object inside an ANALYSIS section.

    Raises:
        MalformedAnalysis: No JSON object, invalid JSON, or not an object.
    """
    match = _JSON_OBJECT.search(section)
    if not match:
        raise MalformedAnalysis("no JSON object in analysis section")
    try:
        payload = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise MalformedAnalysis(f"invalid analysis JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise MalformedAnalysis("analysis is not a JSON object")
    return TutorAnalysis.model_validate(payload)


def parse_tutor_output(text: str) -> TutorReply:
    """Separate the conversational reply from the optional analysis.

    Without a RESPONSE marker everything before ANALYSIS (or the whole text)
    is the reply. A missing or broken analysis yields ``analysis=None``.
    """
    response_match = _RESPONSE.search(text)
    analysis_match = _ANALYSIS.search(text)
    if response_match:
        reply = response_match.group(1).strip()
    elif analysis_match:
        reply = text[:analysis_match.start()].strip()
    else:
        reply = text.strip()

    if not analysis_match:
        logger.info("analysis_missing")
        return TutorReply(reply=reply)

    try:
        analysis = extract_analysis(analysis_match.group(1))
    except MalformedAnalysis as exc:
        logger.warning("analysis_malformed", error=str(exc))
        return TutorReply(reply=reply)
    return TutorReply(reply=reply, analysis=analysis)
