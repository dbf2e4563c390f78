from __future__ import annotations
from typing import Iterable, List, Mapping, Set

from .schemas import (
	AnswerSubmission,
	GradedAnswer,
	GradingResult,
	MultipleChoiceQuestion,
	Question,
	ShortAnswerQuestion,
)


class InvalidSubmissionError(ValueError):
	"""An answer batch that must be rejected as a whole."""


class UnknownQuestionError(InvalidSubmissionError):
	def __init__(self, question_id: int) -> None:
		super().__init__(f"Question with ID {question_id} not found in this exam")
		self.question_id = question_id


class DuplicateAnswerError(InvalidSubmissionError):
	def __init__(self, question_id: int) -> None:
		super().__init__(f"Question with ID {question_id} answered more than once")
		self.question_id = question_id


def _clean(text: str) -> str:
	return (text or "").strip().lower()


def grade(question: Question, submitted: str) -> bool:
	answer = _clean(submitted)
	if isinstance(question, MultipleChoiceQuestion):
		return bool(answer) and answer == _clean(question.correct_answer)
	if isinstance(question, ShortAnswerQuestion):
		# Lenient containment: paraphrases pass, but so can a single shared word
		# when the key is very short, and a blank answer is contained in any key.
		key = _clean(question.correct_answer)
		return answer == key or answer in key or key in answer
	raise TypeError(f"unsupported question type: {type(question).__name__}")


def grade_submission(
	questions: Mapping[int, Question],
	submissions: Iterable[AnswerSubmission],
	max_score: int,
) -> GradingResult:
	"""Grade an answer batch against the question set of one attempt.

	The whole batch is validated before anything is graded; an unknown or
	repeated question id raises and nothing is returned. ``max_score`` comes
	from the attempt and is not derived from the batch, so a partial batch
	simply scores lower.
	"""
	batch = list(submissions)
	seen: Set[int] = set()
	for item in batch:
		if item.question_id not in questions:
			raise UnknownQuestionError(item.question_id)
		if item.question_id in seen:
			raise DuplicateAnswerError(item.question_id)
		seen.add(item.question_id)

	graded: List[GradedAnswer] = [
		GradedAnswer(
			question_id=item.question_id,
			answer=item.answer,
			is_correct=grade(questions[item.question_id], item.answer),
		)
		for item in batch
	]
	score = sum(1 for g in graded if g.is_correct)
	return GradingResult(score=score, max_score=max_score, answers=graded)
