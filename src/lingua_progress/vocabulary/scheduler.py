"""Spaced vocabulary review and quiz progression."""

import random
from datetime import datetime

import structlog

from lingua_progress.models.results import QuizOutcome
from lingua_progress.models.session import QuestionType, QuizQuestion, Session, VocabularyItem

logger = structlog.get_logger()

MASTERY_REVIEWS = 3

QUESTION_TEMPLATES: dict[QuestionType, str] = {
    QuestionType.TRANSLATION: 'What does "{word}" mean?',
    QuestionType.USAGE: 'Write a sentence using the word "{word}".',
}


def grade_answer(expected_word: str, answer: str) -> bool:
    """Lenient match: either trimmed, lower-cased string contains the other.

    A blank answer is never correct.
    """
    given = answer.strip().lower()
    expected = expected_word.strip().lower()
    # Blank is wrong; an empty string would otherwise be a substring of every word
    if not given or not expected:
        return False
    return expected in given or given in expected


def apply_review(item: VocabularyItem, correct: bool, now: datetime) -> None:
    """Record one review; mastery is reached after enough reviews and never lost."""
    item.review_count += 1
    item.last_review = now
    if correct and item.review_count >= MASTERY_REVIEWS:
        item.mastered = True


class VocabularyScheduler:
    """Selects words for review and drives the quiz state machine.

    Operates on a ``Session`` in place; persisting the session and crediting
    points is the caller's job (see ``ProgressLedger``).

    Args:
        rng: Random source for quiz composition.
        correct_points: Points for each correctly answered question.
        completion_bonus: Extra points for finishing a quiz.
    """

    def __init__(
        self,
        rng: random.Random | None = None,
        correct_points: int = 5,
        completion_bonus: int = 25,
    ):
        self._rng = rng or random.Random()
        self.correct_points = correct_points
        self.completion_bonus = completion_bonus

    def due_for_review(self, session: Session, limit: int = 10) -> list[VocabularyItem]:
        """Unmastered words, least recently reviewed first (never-reviewed lead)."""
        pending = [item for item in session.vocabulary if not item.mastered]
        pending.sort(key=lambda item: (item.last_review is not None, item.last_review or item.added_at))
        return pending[:limit]

    def generate_quiz(self, vocabulary: list[VocabularyItem], count: int = 5) -> list[QuizQuestion]:
        """Random questions over distinct vocabulary entries, mastered ones included."""
        selected = self._rng.sample(vocabulary, min(count, len(vocabulary)))
        questions = []
        for item in selected:
            qtype = QuestionType.TRANSLATION if self._rng.random() < 0.5 else QuestionType.USAGE
            questions.append(QuizQuestion(
                word=item.word,
                type=qtype,
                question=QUESTION_TEMPLATES[qtype].format(word=item.word),
            ))
        return questions

    def start(self, session: Session, count: int = 5) -> list[QuizQuestion] | None:
        """Begin a new quiz, replacing any running one. None if there is no vocabulary."""
        questions = self.generate_quiz(session.vocabulary, count)
        if not questions:
            return None
        session.active_quiz = questions
        session.quiz_index = 0
        return questions

    def answer(self, session: Session, answer: str, now: datetime) -> QuizOutcome:
        """Grade ``answer`` against the current question and advance on success.

        Raises:
            ValueError: No quiz is in progress.
        """
        question = session.current_question
        if question is None:
            raise ValueError("no quiz in progress")

        correct = grade_answer(question.word, answer)
        item = session.find_word(question.word)
        if item is not None:
            apply_review(item, correct, now)

        outcome = QuizOutcome(
            correct=correct,
            word=question.word,
            quiz_index=session.quiz_index,
            mastered=item.mastered if item is not None else False,
        )
        if not correct:
            outcome.next_question = question
            return outcome

        outcome.points_awarded = self.correct_points
        session.quiz_index += 1
        if session.quiz_index >= len(session.active_quiz):
            outcome.completed = True
            outcome.points_awarded += self.completion_bonus
            outcome.quiz_index = session.quiz_index
            session.clear_quiz()
            logger.info("quiz_completed", user_id=session.user_id)
        else:
            outcome.quiz_index = session.quiz_index
            outcome.next_question = session.current_question
        return outcome

    def skip(self, session: Session) -> bool:
        """Abandon the running quiz without penalty. False if none was running."""
        if not session.quiz_in_progress:
            return False
        session.clear_quiz()
        return True
