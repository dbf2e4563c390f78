from __future__ import annotations
import logging
from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..db import get_db
from ..grading import InvalidSubmissionError, grade_submission
from ..models import Answer, ExamAttempt, Question
from ..schemas import AnswerOut, AnswerSubmission, AttemptOut, AttemptResults, QuestionOut, ResultItem, SubmissionOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/attempts", tags=["attempts"])


def _get_attempt_or_404(db: Session, attempt_id: int) -> ExamAttempt:
	attempt = db.get(ExamAttempt, attempt_id)
	if attempt is None:
		raise HTTPException(status_code=404, detail="Exam attempt not found")
	return attempt


@router.post("/{attempt_id}/answers", response_model=SubmissionOut)
def submit_answers(attempt_id: int, submissions: List[AnswerSubmission], db: Session = Depends(get_db)):
	attempt = _get_attempt_or_404(db, attempt_id)
	if attempt.completed_at is not None:
		raise HTTPException(status_code=400, detail="Exam attempt already completed")

	rows = db.query(Question).filter(Question.exam_id == attempt.exam_id).all()
	questions = {row.id: row.to_schema() for row in rows}
	try:
		result = grade_submission(questions, submissions, attempt.max_score)
	except InvalidSubmissionError as e:
		raise HTTPException(status_code=400, detail=str(e))

	# Answers and the completed attempt land in one commit, or not at all
	try:
		for graded in result.answers:
			db.add(Answer(
				attempt_id=attempt.id,
				question_id=graded.question_id,
				answer=graded.answer,
				is_correct=graded.is_correct,
			))
		attempt.score = result.score
		attempt.completed_at = datetime.utcnow()
		db.commit()
	except Exception:
		db.rollback()
		raise
	db.refresh(attempt)
	logger.info("Attempt %d scored %d/%d", attempt.id, result.score, result.max_score)
	return SubmissionOut(
		attempt=AttemptOut.model_validate(attempt),
		answers=[AnswerOut.model_validate(a) for a in attempt.answers],
		score=result.score,
		max_score=result.max_score,
	)


@router.get("/{attempt_id}/results", response_model=AttemptResults)
def attempt_results(attempt_id: int, db: Session = Depends(get_db)):
	attempt = _get_attempt_or_404(db, attempt_id)
	if attempt.completed_at is None:
		raise HTTPException(status_code=400, detail="Exam attempt not yet completed")
	results = [
		ResultItem(
			question=QuestionOut.model_validate(answer.question) if answer.question is not None else None,
			answer=AnswerOut.model_validate(answer),
			is_correct=answer.is_correct,
		)
		for answer in attempt.answers
	]
	return AttemptResults(attempt=AttemptOut.model_validate(attempt), results=results, score=attempt.score, max_score=attempt.max_score)
