from __future__ import annotations
import logging
from datetime import datetime, timedelta
from sqlalchemy import select
from sqlalchemy.orm import Session

from .models import Syllabus

logger = logging.getLogger(__name__)


def delete_syllabus(db: Session, syllabus: Syllabus) -> None:
	# ORM cascade removes exams, their questions, attempts and answers in the same transaction
	try:
		db.delete(syllabus)
		db.commit()
	except Exception:
		db.rollback()
		raise


def purge_older_than(db: Session, days: int) -> int:
	if days <= 0:
		return 0
	threshold = datetime.utcnow() - timedelta(days=days)
	stale = db.scalars(select(Syllabus).where(Syllabus.uploaded_at < threshold)).all()
	try:
		for syllabus in stale:
			db.delete(syllabus)
		db.commit()
	except Exception:
		db.rollback()
		raise
	if stale:
		logger.info("Purged %d syllabuses older than %d days", len(stale), days)
	return len(stale)
