"""Tests for vocabulary review selection, grading and quiz progression."""

import random
from datetime import datetime, timedelta, timezone

import pytest

from lingua_progress.models.session import QuestionType, Session, VocabularyItem
from lingua_progress.vocabulary.scheduler import (
    QUESTION_TEMPLATES,
    VocabularyScheduler,
    apply_review,
    grade_answer,
)

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _session(*items: VocabularyItem) -> Session:
    return Session(user_id="u1", vocabulary=list(items))


class TestDueForReview:
    def test_never_reviewed_first_then_oldest(self):
        session = _session(
            VocabularyItem(word="recent", added_at=T0, last_review=T0 + timedelta(days=3)),
            VocabularyItem(word="fresh", added_at=T0),
            VocabularyItem(word="old", added_at=T0, last_review=T0 + timedelta(days=1)),
        )
        due = VocabularyScheduler().due_for_review(session, limit=10)
        assert [v.word for v in due] == ["fresh", "old", "recent"]

    def test_mastered_words_excluded(self):
        session = _session(
            VocabularyItem(word="known", mastered=True, review_count=3),
            VocabularyItem(word="pending"),
        )
        assert [v.word for v in VocabularyScheduler().due_for_review(session)] == ["pending"]

    def test_limit_truncates(self):
        session = _session(*(VocabularyItem(word=f"w{i}", added_at=T0) for i in range(15)))
        assert len(VocabularyScheduler().due_for_review(session, limit=4)) == 4


class TestGenerateQuiz:
    def test_size_is_bounded_by_vocabulary(self):
        vocab = [VocabularyItem(word=w) for w in ("uno", "dos")]
        assert len(VocabularyScheduler().generate_quiz(vocab, count=5)) == 2

    def test_words_drawn_without_replacement(self):
        vocab = [VocabularyItem(word=f"w{i}") for i in range(10)]
        quiz = VocabularyScheduler(rng=random.Random(7)).generate_quiz(vocab, count=6)
        words = [q.word for q in quiz]
        assert len(words) == 6
        assert len(set(words)) == 6

    def test_question_text_matches_type(self):
        vocab = [VocabularyItem(word=f"w{i}") for i in range(10)]
        for q in VocabularyScheduler(rng=random.Random(3)).generate_quiz(vocab, count=10):
            assert q.question == QUESTION_TEMPLATES[q.type].format(word=q.word)

    def test_both_question_types_appear(self):
        vocab = [VocabularyItem(word=f"w{i}") for i in range(40)]
        quiz = VocabularyScheduler(rng=random.Random(11)).generate_quiz(vocab, count=40)
        assert {q.type for q in quiz} == {QuestionType.TRANSLATION, QuestionType.USAGE}

    def test_mastered_words_are_eligible(self):
        vocab = [VocabularyItem(word="known", mastered=True, review_count=5)]
        quiz = VocabularyScheduler().generate_quiz(vocab, count=1)
        assert quiz[0].word == "known"

    def test_empty_vocabulary(self):
        assert VocabularyScheduler().generate_quiz([], count=5) == []


class TestGradeAnswer:
    @pytest.mark.parametrize("answer", ["hola", "  HOLA ", "hola amigo", "Hol"])
    def test_lenient_matches(self, answer):
        assert grade_answer("hola", answer) is True

    @pytest.mark.parametrize("answer", ["adios", "", "   "])
    def test_mismatches(self, answer):
        assert grade_answer("hola", answer) is False


class TestApplyReview:
    def test_scenario_third_correct_review_masters(self):
        item = VocabularyItem(word="hola", review_count=2)
        apply_review(item, True, T0)
        assert item.review_count == 3
        assert item.mastered is True
        assert item.last_review == T0

    def test_correct_but_too_few_reviews(self):
        item = VocabularyItem(word="hola", review_count=1)
        apply_review(item, True, T0)
        assert item.mastered is False

    def test_incorrect_never_masters(self):
        item = VocabularyItem(word="hola", review_count=5)
        apply_review(item, False, T0)
        assert item.review_count == 6
        assert item.mastered is False

    def test_mastery_never_reverts(self):
        item = VocabularyItem(word="hola", review_count=3, mastered=True)
        apply_review(item, False, T0)
        assert item.mastered is True


class TestQuizStateMachine:
    def _running(self, words: list[str]) -> tuple[VocabularyScheduler, Session]:
        scheduler = VocabularyScheduler(rng=random.Random(1))
        session = _session(*(VocabularyItem(word=w) for w in words))
        scheduler.start(session, count=len(words))
        return scheduler, session

    def test_start_sets_index_zero(self):
        _, session = self._running(["a1", "b2"])
        assert session.quiz_in_progress
        assert session.quiz_index == 0

    def test_start_replaces_previous_quiz(self):
        scheduler, session = self._running(["a1", "b2", "c3"])
        scheduler.answer(session, session.current_question.word, T0)
        scheduler.start(session, count=1)
        assert session.quiz_index == 0
        assert len(session.active_quiz) == 1

    def test_start_without_vocabulary_stays_idle(self):
        session = Session(user_id="u1")
        assert VocabularyScheduler().start(session) is None
        assert not session.quiz_in_progress

    def test_wrong_answer_repeats_question(self):
        scheduler, session = self._running(["alpha", "beta"])
        question = session.current_question
        outcome = scheduler.answer(session, "zzz", T0)
        assert outcome.correct is False
        assert outcome.points_awarded == 0
        assert session.quiz_index == 0
        assert session.current_question == question
        assert session.find_word(question.word).review_count == 1

    def test_correct_answer_advances_with_points(self):
        scheduler, session = self._running(["alpha", "beta"])
        outcome = scheduler.answer(session, session.current_question.word, T0)
        assert outcome.correct is True
        assert outcome.points_awarded == 5
        assert session.quiz_index == 1
        assert outcome.next_question == session.current_question

    def test_last_answer_adds_bonus_and_clears(self):
        scheduler, session = self._running(["alpha", "beta"])
        scheduler.answer(session, session.current_question.word, T0)
        outcome = scheduler.answer(session, session.current_question.word, T0)
        assert outcome.completed is True
        assert outcome.points_awarded == 5 + 25
        assert session.active_quiz is None
        assert session.quiz_index == 0

    def test_skip_returns_to_idle(self):
        scheduler, session = self._running(["alpha", "beta"])
        assert scheduler.skip(session) is True
        assert not session.quiz_in_progress
        assert scheduler.skip(session) is False

    def test_answer_without_quiz(self):
        with pytest.raises(ValueError):
            VocabularyScheduler().answer(Session(user_id="u1"), "x", T0)
