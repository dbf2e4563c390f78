from __future__ import annotations
from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, field_validator, model_validator
from pydantic.alias_generators import to_camel


ExamType = Literal["multiple-choice", "short-answer"]
Difficulty = Literal["easy", "medium", "hard", "mixed"]
ExamSource = Literal["ai", "fallback"]

QUESTION_DIFFICULTIES = ("easy", "medium", "hard")


class CamelModel(BaseModel):
	# snake_case in Python, camelCase on the wire
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class ExamConfig(CamelModel):
	type: ExamType
	question_count: int = Field(ge=5, le=50)
	difficulty: Difficulty
	topics: List[str] = Field(default_factory=list)
	time_limit: Optional[PositiveInt] = None

	@field_validator("topics", mode="before")
	@classmethod
	def _none_topics(cls, value):
		return [] if value is None else value


class Topic(CamelModel):
	name: str = Field(min_length=1)
	importance: int = Field(ge=1, le=10)


class Option(CamelModel):
	id: str = Field(min_length=1, pattern=r"^\S+$")
	text: str

	@field_validator("id")
	@classmethod
	def _normalise_id(cls, value: str) -> str:
		return value.strip().lower()


class MultipleChoiceQuestion(CamelModel):
	question_type: Literal["multiple-choice"] = "multiple-choice"
	content: str = Field(min_length=1)
	options: List[Option] = Field(min_length=2)
	correct_answer: str
	topic: Optional[str] = None
	difficulty: Optional[str] = None

	@model_validator(mode="after")
	def _check_key(self) -> "MultipleChoiceQuestion":
		ids = [o.id for o in self.options]
		if len(set(ids)) != len(ids):
			raise ValueError("option ids must be unique")
		key = self.correct_answer.strip().lower()
		if key not in ids:
			raise ValueError(f"correct answer {self.correct_answer!r} is not one of the option ids {ids}")
		self.correct_answer = key
		return self


class ShortAnswerQuestion(CamelModel):
	question_type: Literal["short-answer"] = "short-answer"
	content: str = Field(min_length=1)
	correct_answer: str
	topic: Optional[str] = None
	difficulty: Optional[str] = None

	@field_validator("correct_answer")
	@classmethod
	def _non_blank(cls, value: str) -> str:
		if not value.strip():
			raise ValueError("model answer must not be blank")
		return value


Question = Annotated[
	Union[MultipleChoiceQuestion, ShortAnswerQuestion],
	Field(discriminator="question_type"),
]


class Exam(CamelModel):
	title: str
	questions: List[Question]
	# "fallback" marks template-generated exams produced when the model was unusable
	source: ExamSource = "ai"

	@property
	def is_fallback(self) -> bool:
		return self.source == "fallback"


class AnswerSubmission(CamelModel):
	question_id: int
	answer: str


class GradedAnswer(CamelModel):
	question_id: int
	answer: str
	is_correct: bool


class GradingResult(CamelModel):
	score: int
	max_score: int
	answers: List[GradedAnswer] = Field(default_factory=list)


# ---- API response models ----

class SyllabusOut(CamelModel):
	id: int
	filename: str
	original_name: str
	content_type: str
	uploaded_at: datetime


class SyllabusDetail(SyllabusOut):
	content: str


class QuestionOut(CamelModel):
	id: int
	exam_id: int
	content: str
	question_type: ExamType
	options: Optional[List[Option]] = None
	correct_answer: str
	topic: Optional[str] = None
	difficulty: Optional[str] = None


class ExamOut(CamelModel):
	id: int
	title: str
	syllabus_id: int
	type: ExamType
	difficulty: Difficulty
	question_count: int
	time_limit: Optional[int] = None
	topics: List[str] = Field(default_factory=list)
	source: ExamSource
	created_at: datetime


class ExamDetail(ExamOut):
	questions: List[QuestionOut] = Field(default_factory=list)


class AttemptOut(CamelModel):
	id: int
	exam_id: int
	started_at: datetime
	completed_at: Optional[datetime] = None
	score: Optional[int] = None
	max_score: int


class AnswerOut(CamelModel):
	id: int
	attempt_id: int
	question_id: int
	answer: str
	is_correct: Optional[bool] = None


class SubmissionOut(CamelModel):
	attempt: AttemptOut
	answers: List[AnswerOut]
	score: int
	max_score: int


class ResultItem(CamelModel):
	question: Optional[QuestionOut] = None
	answer: AnswerOut
	is_correct: Optional[bool] = None


class AttemptResults(CamelModel):
	attempt: AttemptOut
	results: List[ResultItem]
	score: Optional[int] = None
	max_score: int
