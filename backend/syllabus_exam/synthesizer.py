"""
Exam synthesis from syllabus text.

The model-backed path asks the configured text backend for a JSON exam and
validates it strictly. Anything unusable (backend errors, timeouts, prose
without JSON, shapes that fail validation) drops to a deterministic template
exam built from the syllabus lines, so callers always get an Exam back.

Only the first ``prefix_chars`` characters of the syllabus are ever used.
That cut is lossy but stable: the same input always yields the same prefix.
"""
from __future__ import annotations
import json
import logging
import re
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from .gemini_client import TextGenerator
from .schemas import (
	QUESTION_DIFFICULTIES,
	Exam,
	ExamConfig,
	MultipleChoiceQuestion,
	Option,
	ShortAnswerQuestion,
	Topic,
)

logger = logging.getLogger(__name__)


DEFAULT_PREFIX_CHARS = 15000
TITLE_SCAN_LINES = 10
TOPIC_LABEL_MAX = 30

_TITLE_LABELS = ("course", "title", "syllabus")
_TITLE_PATTERNS = [re.compile(rf"\b{label}\s*:\s*([a-z0-9 \t]+)", re.IGNORECASE) for label in _TITLE_LABELS]
_EXTENSION_RE = re.compile(r"\.(pdf|docx|txt)$", re.IGNORECASE)
_SEPARATOR_RE = re.compile(r"[_\-]+")
_NUMBERED_RE = re.compile(r"^\d+\.")
_TOPIC_MARKERS = ("Topic", "Learning", "Objective", "Study")

SUBJECT_AREAS: List[str] = [
	"Fundamental Concepts",
	"Key Principles",
	"Theoretical Frameworks",
	"Application Methods",
	"Historical Context",
	"Practical Skills",
	"Core Terminology",
	"Analysis Techniques",
]

DEFAULT_TOPICS: List[Topic] = [
	Topic(name="Main Concepts", importance=10),
	Topic(name="Key Definitions", importance=8),
	Topic(name="Theoretical Frameworks", importance=7),
	Topic(name="Applied Methodologies", importance=9),
	Topic(name="Historical Context", importance=6),
	Topic(name="Case Studies", importance=8),
	Topic(name="Research Methods", importance=7),
]


class MalformedResponse(ValueError):
	"""The model answered, but not with something we can turn into an exam."""


def truncate_syllabus(text: str, prefix_chars: int = DEFAULT_PREFIX_CHARS) -> str:
	return (text or "")[:prefix_chars]


def extract_course_title(content: str, source_name: str) -> str:
	first_lines = (content or "").splitlines()[:TITLE_SCAN_LINES]
	for pattern in _TITLE_PATTERNS:
		for line in first_lines:
			m = pattern.search(line)
			if m and m.group(1).strip():
				return " ".join(m.group(1).split())
	name = _EXTENSION_RE.sub("", (source_name or "").strip())
	name = " ".join(_SEPARATOR_RE.sub(" ", name).split())
	return name or "Untitled Course"


def exam_title(course_title: str, difficulty: str) -> str:
	return f"{course_title} - {difficulty.capitalize()} Difficulty Exam"


def build_exam_prompt(syllabus: str, config: ExamConfig) -> str:
	lines = [
		"You are an expert educator creating exam questions based on course content.",
		"",
		"Course syllabus content:",
		"---",
		syllabus,
		"---",
		"",
		"Exam configuration:",
		f"- Type: {config.type}",
		f"- Number of questions: {config.question_count}",
		f"- Difficulty: {config.difficulty}",
	]
	if config.time_limit:
		lines.append(f"- Time limit: {config.time_limit} minutes")
	if config.topics:
		lines.append(f"- Focus topics (advisory): {', '.join(config.topics)}")
	lines += [
		"",
		f"Create an exam with {config.question_count} {config.type} questions based on the syllabus content.",
		"",
		"Guidelines:",
		"- Create questions that test understanding, not just memorization",
		"- For multiple-choice, create 4 options per question with only one correct answer",
		"- For short-answer, provide a concise model answer",
		"- Make sure all questions are directly based on the syllabus content",
		"- Cover a broad range of content from the syllabus",
		f"- For {config.difficulty} difficulty level, adjust complexity accordingly",
		"",
		"Return a single JSON object with this structure:",
	]
	if config.type == "multiple-choice":
		lines.append(
			'{"title": "Exam title", "questions": [{"content": "Question text", "questionType": "multiple-choice", '
			'"options": [{"id": "a", "text": "..."}, {"id": "b", "text": "..."}, {"id": "c", "text": "..."}, {"id": "d", "text": "..."}], '
			'"correctAnswer": "a", "topic": "Topic name", "difficulty": "easy|medium|hard"}]}'
		)
		lines.append("correctAnswer must be the id of exactly one of the options.")
	else:
		lines.append(
			'{"title": "Exam title", "questions": [{"content": "Question text", "questionType": "short-answer", '
			'"correctAnswer": "Model answer", "topic": "Topic name", "difficulty": "easy|medium|hard"}]}'
		)
	lines.append("Return ONLY the JSON object without any other text or explanation.")
	return "\n".join(lines)


def build_topics_prompt(syllabus: str) -> str:
	return (
		"You are an educational expert analyzing a course syllabus.\n"
		"Identify the main topics covered in this syllabus, along with their relative importance on a scale of 1-10.\n\n"
		f"Syllabus:\n---\n{syllabus}\n---\n\n"
		'Return a JSON object with this structure: {"topics": [{"name": "Topic name", "importance": 7}]}\n'
		"Identify between 5-15 distinct topics. Focus on academic content, not administrative details.\n"
		"Return ONLY the JSON object without any other text or explanation."
	)


def extract_json_object(text: str) -> Dict[str, Any]:
	"""Parse the first balanced ``{...}`` region of ``text``.

	Models like to wrap JSON in prose or code fences, so we scan for the first
	opening brace and track depth (ignoring braces inside string literals)
	until it closes.
	"""
	if not text:
		raise MalformedResponse("empty response")
	start = text.find("{")
	if start == -1:
		raise MalformedResponse("no JSON object in response")
	depth = 0
	in_string = False
	escaped = False
	for i in range(start, len(text)):
		ch = text[i]
		if in_string:
			if escaped:
				escaped = False
			elif ch == "\\":
				escaped = True
			elif ch == '"':
				in_string = False
			continue
		if ch == '"':
			in_string = True
		elif ch == "{":
			depth += 1
		elif ch == "}":
			depth -= 1
			if depth == 0:
				try:
					data = json.loads(text[start : i + 1])
				except json.JSONDecodeError as err:
					raise MalformedResponse(f"invalid JSON: {err}") from err
				if not isinstance(data, dict):
					raise MalformedResponse("JSON root is not an object")
				return data
	raise MalformedResponse("unbalanced JSON object in response")


def _clean_str(value: Any) -> Optional[str]:
	if isinstance(value, bool) or value is None:
		return None
	if isinstance(value, (int, float)):
		value = str(value)
	if not isinstance(value, str):
		return None
	value = value.strip()
	return value or None


def _coerce_options(raw: Any) -> List[Option]:
	if not isinstance(raw, list):
		raise MalformedResponse("options must be a list")
	options: List[Option] = []
	for idx, item in enumerate(raw):
		if isinstance(item, dict):
			option_id = _clean_str(item.get("id")) or chr(ord("a") + idx)
			text = _clean_str(item.get("text"))
		else:
			option_id = chr(ord("a") + idx)
			text = _clean_str(item)
		if text is None:
			raise MalformedResponse(f"option {idx + 1} has no text")
		options.append(Option(id=option_id.lower(), text=text))
	return options


def _resolve_key(raw_key: Any, options: List[Option]) -> str:
	key = _clean_str(raw_key)
	if key is None:
		raise MalformedResponse("missing correctAnswer")
	lowered = key.lower()
	for option in options:
		if option.id == lowered:
			return option.id
	# some models answer with the option text instead of its id
	for option in options:
		if option.text.lower() == lowered:
			return option.id
	raise MalformedResponse(f"correctAnswer {key!r} does not match any option")


def _coerce_difficulty(raw: Any, config: ExamConfig) -> Optional[str]:
	value = (_clean_str(raw) or "").lower()
	if value in QUESTION_DIFFICULTIES:
		return value
	return None if config.difficulty == "mixed" else config.difficulty


def coerce_exam(data: Dict[str, Any], config: ExamConfig, title: str) -> Exam:
	"""Validate a parsed model response into an Exam or raise MalformedResponse.

	Missing optional fields are repaired with defaults; anything structural
	(wrong question type, no content, an answer key that matches no option)
	rejects the whole response.
	"""
	raw_questions = data.get("questions")
	if not isinstance(raw_questions, list) or not raw_questions:
		raise MalformedResponse("response has no questions")
	questions = []
	for n, item in enumerate(raw_questions[: config.question_count], start=1):
		if not isinstance(item, dict):
			raise MalformedResponse(f"question {n} is not an object")
		qtype = (_clean_str(item.get("questionType")) or config.type).lower()
		if qtype != config.type:
			raise MalformedResponse(f"question {n} has type {qtype!r}, expected {config.type!r}")
		content = _clean_str(item.get("content"))
		if content is None:
			raise MalformedResponse(f"question {n} has no content")
		topic = _clean_str(item.get("topic"))
		difficulty = _coerce_difficulty(item.get("difficulty"), config)
		try:
			if qtype == "multiple-choice":
				options = _coerce_options(item.get("options"))
				questions.append(MultipleChoiceQuestion(
					content=content,
					options=options,
					correct_answer=_resolve_key(item.get("correctAnswer"), options),
					topic=topic,
					difficulty=difficulty,
				))
			else:
				answer = _clean_str(item.get("correctAnswer"))
				if answer is None:
					raise MalformedResponse(f"question {n} has no model answer")
				questions.append(ShortAnswerQuestion(
					content=content,
					correct_answer=answer,
					topic=topic,
					difficulty=difficulty,
				))
		except ValidationError as err:
			raise MalformedResponse(f"question {n} failed validation: {err}") from err
	return Exam(title=title, questions=questions, source="ai")


def _topic_lines(syllabus: str) -> List[str]:
	lines = []
	for line in syllabus.splitlines():
		stripped = line.strip()
		if not stripped:
			continue
		if any(marker in stripped for marker in _TOPIC_MARKERS) or _NUMBERED_RE.match(stripped):
			lines.append(stripped)
	return lines


def _topic_label(text: str) -> str:
	if len(text) > TOPIC_LABEL_MAX:
		return text[:TOPIC_LABEL_MAX].strip() + "..."
	return text.strip()


def mock_exam(syllabus: str, config: ExamConfig, course_title: str) -> Exam:
	"""Template exam from syllabus lines; always exactly ``question_count`` long."""
	relevant = _topic_lines(syllabus)
	questions = []
	for i in range(config.question_count):
		base = relevant[i] if i < len(relevant) else SUBJECT_AREAS[i % len(SUBJECT_AREAS)]
		topic = _topic_label(base)
		if config.difficulty == "mixed":
			difficulty = QUESTION_DIFFICULTIES[i % len(QUESTION_DIFFICULTIES)]
		else:
			difficulty = config.difficulty
		if config.type == "multiple-choice":
			questions.append(MultipleChoiceQuestion(
				content=f'Question {i + 1}: Which of the following best describes "{topic}"?',
				options=[
					Option(id="a", text=f"The primary framework for understanding {topic}"),
					Option(id="b", text=f"A secondary concept related to {topic}"),
					Option(id="c", text=f"An application method for {topic}"),
					Option(id="d", text=f"The historical development of {topic}"),
				],
				correct_answer="a",
				topic=topic,
				difficulty=difficulty,
			))
		else:
			questions.append(ShortAnswerQuestion(
				content=f'Question {i + 1}: Briefly explain the concept of "{topic}" and its significance.',
				correct_answer=(
					f"{topic} is a fundamental concept that involves understanding the core principles "
					"and applying them appropriately in context."
				),
				topic=topic,
				difficulty=difficulty,
			))
	return Exam(title=exam_title(course_title, config.difficulty), questions=questions, source="fallback")


def coerce_topics(data: Dict[str, Any]) -> List[Topic]:
	raw = data.get("topics")
	if not isinstance(raw, list):
		return []
	topics: List[Topic] = []
	for item in raw:
		if not isinstance(item, dict):
			continue
		name = _clean_str(item.get("name"))
		if name is None:
			continue
		try:
			importance = int(float(item.get("importance", 5)))
		except (TypeError, ValueError, OverflowError):
			importance = 5
		topics.append(Topic(name=name, importance=max(1, min(10, importance))))
	return topics


class ExamSynthesizer:
	def __init__(self, backend: Optional[TextGenerator], *, prefix_chars: int = DEFAULT_PREFIX_CHARS) -> None:
		self.backend = backend
		self.prefix_chars = prefix_chars

	async def synthesize(self, syllabus_text: str, config: ExamConfig, source_name: str) -> Exam:
		syllabus = truncate_syllabus(syllabus_text, self.prefix_chars)
		course_title = extract_course_title(syllabus, source_name)
		if self.backend is None:
			logger.warning("No text backend configured; generating template exam for %r", course_title)
			return mock_exam(syllabus, config, course_title)
		try:
			raw = await self.backend.generate(build_exam_prompt(syllabus, config))
			exam = coerce_exam(extract_json_object(raw), config, exam_title(course_title, config.difficulty))
		except Exception as err:
			# exam generation must never hard-fail; degrade to the template exam
			logger.warning("Exam generation for %r fell back to template exam: %s", course_title, err)
			return mock_exam(syllabus, config, course_title)
		if len(exam.questions) < config.question_count:
			logger.info(
				"Model returned %d of %d requested questions for %r",
				len(exam.questions), config.question_count, course_title,
			)
		return exam

	async def extract_topics(self, syllabus_text: str) -> List[Topic]:
		if self.backend is None:
			return list(DEFAULT_TOPICS)
		syllabus = truncate_syllabus(syllabus_text, self.prefix_chars)
		try:
			raw = await self.backend.generate(build_topics_prompt(syllabus))
			topics = coerce_topics(extract_json_object(raw))
		except Exception as err:
			logger.warning("Topic extraction fell back to default topics: %s", err)
			return list(DEFAULT_TOPICS)
		return topics or list(DEFAULT_TOPICS)
