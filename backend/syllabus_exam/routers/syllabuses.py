from __future__ import annotations
import logging
import uuid
from pathlib import PurePath
from typing import List

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..cleanup import delete_syllabus
from ..db import get_db
from ..deps import get_synthesizer
from ..models import Exam, Question, Syllabus
from ..schemas import Exam as GeneratedExam, ExamConfig, ExamDetail, ExamOut, SyllabusDetail, SyllabusOut, Topic
from ..settings import settings
from ..synthesizer import ExamSynthesizer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/syllabuses", tags=["syllabuses"])

# Binary formats are converted to text upstream; only decoded text is accepted here
TEXT_CONTENT_TYPES = {"text/plain", "text/markdown"}
TEXT_SUFFIXES = {".txt", ".md"}


def _get_syllabus_or_404(db: Session, syllabus_id: int) -> Syllabus:
	syllabus = db.get(Syllabus, syllabus_id)
	if syllabus is None:
		raise HTTPException(status_code=404, detail="Syllabus not found")
	return syllabus


def _save(db: Session, row):
	db.add(row)
	db.commit()
	db.refresh(row)
	return row


def store_exam(db: Session, syllabus: Syllabus, config: ExamConfig, generated: GeneratedExam) -> Exam:
	exam = Exam(
		title=generated.title,
		syllabus_id=syllabus.id,
		type=config.type,
		difficulty=config.difficulty,
		question_count=config.question_count,
		time_limit=config.time_limit,
		topics=list(config.topics),
		source=generated.source,
	)
	exam.questions = [Question.from_schema(q) for q in generated.questions]
	_save(db, exam)
	# load questions here so serialising the response issues no queries
	exam.questions
	return exam


@router.post("", response_model=SyllabusOut, status_code=201)
async def upload_syllabus(file: UploadFile = File(...), db: Session = Depends(get_db)):
	original_name = file.filename or "syllabus.txt"
	suffix = PurePath(original_name).suffix.lower()
	content_type = (file.content_type or "").split(";")[0].strip().lower()
	if content_type not in TEXT_CONTENT_TYPES and suffix not in TEXT_SUFFIXES:
		raise HTTPException(status_code=415, detail="Only plain-text syllabuses are accepted; extract PDF/DOCX text first")
	# read at most one byte past the cap
	raw = await file.read(settings.max_upload_bytes + 1)
	if len(raw) > settings.max_upload_bytes:
		raise HTTPException(status_code=413, detail="Syllabus file is too large")
	content = raw.decode("utf-8", errors="replace")
	if not content.strip():
		raise HTTPException(status_code=400, detail="Syllabus file is empty")
	syllabus = Syllabus(
		filename=f"{uuid.uuid4().hex}{suffix or '.txt'}",
		original_name=original_name,
		content_type=content_type or "text/plain",
		content=content,
	)
	await run_in_threadpool(_save, db, syllabus)
	logger.info("Stored syllabus %d (%s, %d chars)", syllabus.id, original_name, len(content))
	return syllabus


@router.get("", response_model=List[SyllabusOut])
def list_syllabuses(db: Session = Depends(get_db)):
	return db.scalars(select(Syllabus).order_by(Syllabus.uploaded_at.desc(), Syllabus.id.desc())).all()


@router.get("/{syllabus_id}", response_model=SyllabusDetail)
def get_syllabus(syllabus_id: int, db: Session = Depends(get_db)):
	return _get_syllabus_or_404(db, syllabus_id)


@router.delete("/{syllabus_id}")
def remove_syllabus(syllabus_id: int, db: Session = Depends(get_db)):
	syllabus = _get_syllabus_or_404(db, syllabus_id)
	delete_syllabus(db, syllabus)
	return {"message": "Syllabus deleted successfully"}


@router.get("/{syllabus_id}/topics", response_model=List[Topic])
async def syllabus_topics(
	syllabus_id: int,
	db: Session = Depends(get_db),
	synthesizer: ExamSynthesizer = Depends(get_synthesizer),
):
	syllabus = await run_in_threadpool(_get_syllabus_or_404, db, syllabus_id)
	return await synthesizer.extract_topics(syllabus.content)


@router.post("/{syllabus_id}/exams", response_model=ExamDetail, status_code=201)
async def generate_exam(
	syllabus_id: int,
	config: ExamConfig,
	db: Session = Depends(get_db),
	synthesizer: ExamSynthesizer = Depends(get_synthesizer),
):
	syllabus = await run_in_threadpool(_get_syllabus_or_404, db, syllabus_id)
	generated = await synthesizer.synthesize(syllabus.content, config, syllabus.original_name)
	exam = await run_in_threadpool(store_exam, db, syllabus, config, generated)
	logger.info(
		"Created exam %d for syllabus %d: %d questions (%s)",
		exam.id, exam.syllabus_id, len(exam.questions), generated.source,
	)
	return exam


@router.get("/{syllabus_id}/exams", response_model=List[ExamOut])
def list_exams(syllabus_id: int, db: Session = Depends(get_db)):
	syllabus = _get_syllabus_or_404(db, syllabus_id)
	return db.scalars(select(Exam).where(Exam.syllabus_id == syllabus.id).order_by(Exam.created_at.desc(), Exam.id.desc())).all()
