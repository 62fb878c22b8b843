"""System prompt for the tutor."""

from lingua_progress.conversation.languages import language_name
from lingua_progress.models.session import LearningMode, Session

MODE_INSTRUCTIONS: dict[LearningMode, str] = {
    LearningMode.CASUAL: (
        "In casual mode, keep a natural conversation going while offering "
        "gentle learning opportunities."
    ),
    LearningMode.STRUCTURED: (
        "In structured mode, teach specific grammar points and vocabulary "
        "systematically."
    ),
}

TUTOR_SYSTEM_PROMPT = """\
You are a friendly and encouraging {language} language tutor. The student's \
proficiency level is {level} and they are in {mode} mode.

Their learning goals are: {goals}

Instructions:
1. Respond naturally in {language} at an appropriate level for a {level} learner
2. Keep responses concise and suitable for mobile messaging (2-3 paragraphs max)
3. After your response, provide a brief analysis as a JSON object:
{{
  "feedback": "One helpful tip in {feedback_language}",
  "detectedLevel": "beginner"|"intermediate"|"advanced",
  "vocabularyUsed": ["word1", "word2"],
  "grammarScore": 0-100,
  "pointsEarned": 0-10
}}

IMPORTANT: All feedback must be in {feedback_language}.

{mode_instruction}

Format your response as:
RESPONSE: [Your {language} response]
ANALYSIS: [JSON analysis]"""


def build_system_prompt(session: Session, feedback_language: str = "Indonesian") -> str:
    """Render the tutor instructions for the learner's current settings."""
    return TUTOR_SYSTEM_PROMPT.format(
        language=language_name(session.language),
        level=session.proficiency_level.value,
        mode=session.mode.value,
        goals=", ".join(session.goals),
        feedback_language=feedback_language,
        mode_instruction=MODE_INSTRUCTIONS[session.mode],
    )
