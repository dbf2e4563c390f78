from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from syllabus_exam import models  # noqa: F401  (registers tables on Base)
from syllabus_exam.db import Base, get_db
from syllabus_exam.deps import get_synthesizer
from syllabus_exam.main import app
from syllabus_exam.synthesizer import ExamSynthesizer


SAMPLE_SYLLABUS = "\n".join([
	"Course: Introduction to Biology",
	"Instructor: Dr. Smith",
	"",
	"Week 1 Topic: Cells",
	"Learning outcomes include lab safety",
	"1. Cell structure and function in eukaryotes",
	"Grading policy: weekly quizzes",
])


class StubBackend:
	"""Text backend double: returns a canned reply or raises."""

	def __init__(self, reply: str | None = None, error: Exception | None = None) -> None:
		self.reply = reply
		self.error = error
		self.prompts: list[str] = []

	async def generate(self, prompt: str) -> str:
		self.prompts.append(prompt)
		if self.error is not None:
			raise self.error
		return self.reply or ""


def mc_question(n: int, *, key: str = "b", **extra) -> dict:
	q = {
		"content": f"What does organelle {n} do?",
		"questionType": "multiple-choice",
		"options": [
			{"id": "a", "text": "Stores DNA"},
			{"id": "b", "text": "Produces ATP"},
			{"id": "c", "text": "Synthesises proteins"},
			{"id": "d", "text": "Digests waste"},
		],
		"correctAnswer": key,
		"topic": "Cells",
		"difficulty": "medium",
	}
	q.update(extra)
	return q


def sa_question(n: int, answer: str = "photosynthesis", **extra) -> dict:
	q = {
		"content": f"Name process {n}.",
		"questionType": "short-answer",
		"correctAnswer": answer,
		"topic": "Plants",
		"difficulty": "easy",
	}
	q.update(extra)
	return q


def exam_reply(questions: list[dict], title: str = "Biology Exam") -> str:
	return "Here is your exam:\n```json\n" + json.dumps({"title": title, "questions": questions}) + "\n```\nGood luck!"


@pytest.fixture
def sample_syllabus() -> str:
	return SAMPLE_SYLLABUS


@pytest.fixture
def session_factory(tmp_path):
	engine = create_engine(
		f"sqlite:///{tmp_path / 'test.db'}",
		connect_args={"check_same_thread": False},
		future=True,
	)
	Base.metadata.create_all(bind=engine)
	yield sessionmaker(bind=engine, autoflush=False, future=True)
	engine.dispose()


@pytest.fixture
def backend() -> StubBackend:
	return StubBackend(error=RuntimeError("backend offline"))


@pytest.fixture
def client(session_factory, backend):
	def _get_db():
		db = session_factory()
		try:
			yield db
		finally:
			db.close()

	async def _get_synthesizer():
		yield ExamSynthesizer(backend)

	app.dependency_overrides[get_db] = _get_db
	app.dependency_overrides[get_synthesizer] = _get_synthesizer
	yield TestClient(app)
	app.dependency_overrides.clear()
