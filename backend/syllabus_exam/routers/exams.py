from __future__ import annotations
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..db import get_db
from ..models import Exam, ExamAttempt
from ..schemas import AttemptOut, ExamDetail

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/exams", tags=["exams"])


def _get_exam_or_404(db: Session, exam_id: int) -> Exam:
	exam = db.get(Exam, exam_id)
	if exam is None:
		raise HTTPException(status_code=404, detail="Exam not found")
	return exam


@router.get("/{exam_id}", response_model=ExamDetail)
def get_exam(exam_id: int, db: Session = Depends(get_db)):
	return _get_exam_or_404(db, exam_id)


@router.post("/{exam_id}/attempts", response_model=AttemptOut, status_code=201)
def start_attempt(exam_id: int, db: Session = Depends(get_db)):
	exam = _get_exam_or_404(db, exam_id)
	# max_score is frozen here; later submissions are scored against it
	attempt = ExamAttempt(exam_id=exam.id, max_score=len(exam.questions))
	db.add(attempt)
	db.commit()
	db.refresh(attempt)
	logger.info("Started attempt %d on exam %d (max score %d)", attempt.id, exam.id, attempt.max_score)
	return attempt
