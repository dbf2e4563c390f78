from __future__ import annotations
from datetime import datetime
from typing import Optional
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import relationship
from .db import Base
from . import schemas


class Syllabus(Base):
	__tablename__ = "syllabuses"
	id = Column(Integer, primary_key=True, autoincrement=True)
	# Stored name (uuid + extension); original_name is what the user uploaded
	filename = Column(String(256), nullable=False)
	original_name = Column(String(512), nullable=False)
	content_type = Column(String(128), nullable=False)
	content = Column(Text, nullable=False)
	uploaded_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

	exams = relationship("Exam", back_populates="syllabus", cascade="all, delete-orphan")


class Exam(Base):
	__tablename__ = "exams"
	id = Column(Integer, primary_key=True, autoincrement=True)
	title = Column(String(512), nullable=False)
	syllabus_id = Column(Integer, ForeignKey("syllabuses.id", ondelete="CASCADE"), nullable=False, index=True)
	type = Column(String(32), nullable=False)  # multiple-choice, short-answer
	difficulty = Column(String(16), nullable=False)  # easy, medium, hard, mixed
	question_count = Column(Integer, nullable=False)
	time_limit = Column(Integer, nullable=True)  # minutes
	topics = Column(JSON, default=list, nullable=False)
	# "ai" or "fallback" (template exam used when the model output was unusable)
	source = Column(String(16), default="ai", nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

	syllabus = relationship("Syllabus", back_populates="exams")
	questions = relationship(
		"Question", back_populates="exam", order_by="Question.id", cascade="all, delete-orphan"
	)
	attempts = relationship("ExamAttempt", back_populates="exam", cascade="all, delete-orphan")


class Question(Base):
	__tablename__ = "questions"
	id = Column(Integer, primary_key=True, autoincrement=True)
	exam_id = Column(Integer, ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
	content = Column(Text, nullable=False)
	question_type = Column(String(32), nullable=False)
	options = Column(JSON, nullable=True)  # [{"id": "a", "text": "..."}, ...] for multiple choice
	correct_answer = Column(Text, nullable=False)
	topic = Column(String(256), nullable=True)
	difficulty = Column(String(16), nullable=True)

	exam = relationship("Exam", back_populates="questions")
	answers = relationship("Answer", back_populates="question", cascade="all, delete-orphan")

	@classmethod
	def from_schema(cls, question: schemas.Question, *, exam_id: Optional[int] = None) -> "Question":
		options = None
		if isinstance(question, schemas.MultipleChoiceQuestion):
			options = [o.model_dump() for o in question.options]
		return cls(
			exam_id=exam_id,
			content=question.content,
			question_type=question.question_type,
			options=options,
			correct_answer=question.correct_answer,
			topic=question.topic,
			difficulty=question.difficulty,
		)

	def to_schema(self) -> schemas.Question:
		if self.question_type == "multiple-choice":
			return schemas.MultipleChoiceQuestion(
				content=self.content,
				options=[schemas.Option(**o) for o in (self.options or [])],
				correct_answer=self.correct_answer,
				topic=self.topic,
				difficulty=self.difficulty,
			)
		if self.question_type == "short-answer":
			return schemas.ShortAnswerQuestion(
				content=self.content,
				correct_answer=self.correct_answer,
				topic=self.topic,
				difficulty=self.difficulty,
			)
		raise ValueError(f"unknown question type {self.question_type!r}")


class ExamAttempt(Base):
	__tablename__ = "exam_attempts"
	id = Column(Integer, primary_key=True, autoincrement=True)
	exam_id = Column(Integer, ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
	started_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	completed_at = Column(DateTime, nullable=True)
	score = Column(Integer, nullable=True)
	# Question count when the attempt began; never recomputed
	max_score = Column(Integer, nullable=False)

	exam = relationship("Exam", back_populates="attempts")
	answers = relationship(
		"Answer", back_populates="attempt", order_by="Answer.id", cascade="all, delete-orphan"
	)


class Answer(Base):
	__tablename__ = "answers"
	id = Column(Integer, primary_key=True, autoincrement=True)
	attempt_id = Column(Integer, ForeignKey("exam_attempts.id", ondelete="CASCADE"), nullable=False, index=True)
	question_id = Column(Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False)
	answer = Column(Text, nullable=False)
	is_correct = Column(Boolean, nullable=True)

	attempt = relationship("ExamAttempt", back_populates="answers")
	question = relationship("Question", back_populates="answers")
