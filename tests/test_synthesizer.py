from __future__ import annotations

import asyncio
import json

import pytest

from syllabus_exam.schemas import ExamConfig, MultipleChoiceQuestion, ShortAnswerQuestion
from syllabus_exam.synthesizer import (
	DEFAULT_TOPICS,
	ExamSynthesizer,
	MalformedResponse,
	build_exam_prompt,
	extract_course_title,
	extract_json_object,
	mock_exam,
)

from conftest import StubBackend, exam_reply, mc_question, sa_question


def _config(**overrides) -> ExamConfig:
	values = {"type": "multiple-choice", "question_count": 5, "difficulty": "medium"}
	values.update(overrides)
	return ExamConfig(**values)


def _synthesize(backend, syllabus, config, source_name="bio_101.txt", **kwargs):
	return asyncio.run(ExamSynthesizer(backend, **kwargs).synthesize(syllabus, config, source_name))


# ---- title derivation ----

def test_title_from_course_label(sample_syllabus):
	assert extract_course_title(sample_syllabus, "whatever.pdf") == "Introduction to Biology"


def test_title_label_priority_and_case():
	text = "Syllabus: Spring Term\ntitle: Data Structures\nnotes"
	assert extract_course_title(text, "x.txt") == "Data Structures"


def test_title_ignores_labels_past_first_ten_lines():
	text = "\n".join(["filler"] * 10 + ["Course: Too Late"])
	assert extract_course_title(text, "intro_to_chem.pdf") == "intro to chem"


def test_title_from_filename_separators():
	assert extract_course_title("no labels here", "Organic-Chemistry_II.DOCX") == "Organic Chemistry II"


def test_title_fallback_when_nothing_usable():
	assert extract_course_title("", "") == "Untitled Course"


# ---- JSON extraction ----

def test_extract_json_object_skips_prose_and_trailing_braces():
	raw = 'Sure! {"title": "T", "questions": [{"content": "use {braces} \\"here\\""}]} trailing {junk}'
	data = extract_json_object(raw)
	assert data["questions"][0]["content"] == 'use {braces} "here"'


@pytest.mark.parametrize("raw", ["", "no json at all", '{"title": "unterminated"', "{not: json}"])
def test_extract_json_object_rejects_garbage(raw):
	with pytest.raises(MalformedResponse):
		extract_json_object(raw)


# ---- prompt ----

def test_prompt_embeds_configuration(sample_syllabus):
	prompt = build_exam_prompt(sample_syllabus, _config(time_limit=45, topics=["Cells", "Genetics"]))
	assert "Introduction to Biology" in prompt
	assert "- Number of questions: 5" in prompt
	assert "- Time limit: 45 minutes" in prompt
	assert "Cells, Genetics" in prompt
	assert '"questionType": "multiple-choice"' in prompt


def test_prompt_omits_time_limit_when_absent(sample_syllabus):
	prompt = build_exam_prompt(sample_syllabus, _config(type="short-answer"))
	assert "Time limit" not in prompt
	assert '"questionType": "short-answer"' in prompt


# ---- model-backed path ----

def test_ai_exam_from_wrapped_json(sample_syllabus):
	backend = StubBackend(reply=exam_reply([mc_question(i) for i in range(5)]))
	exam = _synthesize(backend, sample_syllabus, _config())
	assert exam.source == "ai"
	assert not exam.is_fallback
	assert exam.title == "Introduction to Biology - Medium Difficulty Exam"
	assert len(exam.questions) == 5
	for q in exam.questions:
		assert isinstance(q, MultipleChoiceQuestion)
		assert q.correct_answer == "b"
		assert [o.id for o in q.options] == ["a", "b", "c", "d"]
	assert len(backend.prompts) == 1


def test_ai_exam_keeps_fewer_questions_than_requested(sample_syllabus):
	backend = StubBackend(reply=exam_reply([sa_question(i) for i in range(3)]))
	exam = _synthesize(backend, sample_syllabus, _config(type="short-answer"))
	assert exam.source == "ai"
	assert len(exam.questions) == 3
	assert all(isinstance(q, ShortAnswerQuestion) for q in exam.questions)


def test_ai_exam_truncates_extra_questions(sample_syllabus):
	backend = StubBackend(reply=exam_reply([mc_question(i) for i in range(8)]))
	exam = _synthesize(backend, sample_syllabus, _config())
	assert len(exam.questions) == 5


def test_ai_exam_repairs_string_options_and_text_key(sample_syllabus):
	question = mc_question(1, key="Produces ATP", options=["Stores DNA", "Produces ATP", "Digests waste", "Moves"])
	question.pop("questionType")
	question["difficulty"] = "Impossible"
	backend = StubBackend(reply=exam_reply([question] * 5))
	exam = _synthesize(backend, sample_syllabus, _config(difficulty="hard"))
	q = exam.questions[0]
	assert exam.source == "ai"
	assert q.correct_answer == "b"
	assert q.difficulty == "hard"


def test_ai_exam_mixed_difficulty_drops_unknown_level(sample_syllabus):
	backend = StubBackend(reply=exam_reply([mc_question(i, difficulty="extreme") for i in range(5)]))
	exam = _synthesize(backend, sample_syllabus, _config(difficulty="mixed"))
	assert exam.questions[0].difficulty is None


def test_ai_exam_normalises_uppercase_key(sample_syllabus):
	backend = StubBackend(reply=exam_reply([mc_question(i, key="C") for i in range(5)]))
	exam = _synthesize(backend, sample_syllabus, _config())
	assert exam.questions[0].correct_answer == "c"


@pytest.mark.parametrize("reply", [
	"I cannot help with that.",
	json.dumps({"title": "x", "questions": []}),
	exam_reply([mc_question(1, key="z")] * 5),
	exam_reply([mc_question(1, content="")] * 5),
	exam_reply([sa_question(1)] * 5),
	exam_reply([mc_question(1, options=[{"id": "a", "text": "x"}, {"id": "a", "text": "y"}])] * 5),
	exam_reply([mc_question(1, options=[{"id": "a", "text": "only one"}], key="a")] * 5),
])
def test_unusable_reply_falls_back_to_template(sample_syllabus, reply):
	exam = _synthesize(StubBackend(reply=reply), sample_syllabus, _config())
	assert exam.source == "fallback"
	assert len(exam.questions) == 5


def test_backend_error_falls_back(sample_syllabus):
	exam = _synthesize(StubBackend(error=TimeoutError("slow")), sample_syllabus, _config(question_count=12))
	assert exam.is_fallback
	assert len(exam.questions) == 12


def test_no_backend_uses_template(sample_syllabus):
	exam = _synthesize(None, sample_syllabus, _config(type="short-answer"))
	assert exam.source == "fallback"
	assert all(isinstance(q, ShortAnswerQuestion) for q in exam.questions)


# ---- template exams ----

def test_mock_exam_topics_from_marker_lines(sample_syllabus):
	exam = mock_exam(sample_syllabus, _config(), "Introduction to Biology")
	topics = [q.topic for q in exam.questions]
	assert topics == [
		"Week 1 Topic: Cells",
		"Learning outcomes include lab...",
		"1. Cell structure and function...",
		"Application Methods",
		"Historical Context",
	]
	assert exam.title == "Introduction to Biology - Medium Difficulty Exam"


def test_mock_exam_multiple_choice_shape(sample_syllabus):
	exam = mock_exam(sample_syllabus, _config(), "Bio")
	q = exam.questions[0]
	assert q.correct_answer == "a"
	assert q.options[0].text == "The primary framework for understanding Week 1 Topic: Cells"
	assert q.content.startswith("Question 1:")


def test_mock_exam_short_answer_shape(sample_syllabus):
	exam = mock_exam(sample_syllabus, _config(type="short-answer"), "Bio")
	q = exam.questions[3]
	assert isinstance(q, ShortAnswerQuestion)
	assert q.correct_answer.startswith("Application Methods is a fundamental concept")


def test_mock_exam_difficulty_cycles_for_mixed(sample_syllabus):
	exam = mock_exam(sample_syllabus, _config(difficulty="mixed", question_count=7), "Bio")
	assert [q.difficulty for q in exam.questions] == ["easy", "medium", "hard", "easy", "medium", "hard", "easy"]
	assert exam.title == "Bio - Mixed Difficulty Exam"


def test_mock_exam_fixed_difficulty(sample_syllabus):
	exam = mock_exam(sample_syllabus, _config(difficulty="easy"), "Bio")
	assert {q.difficulty for q in exam.questions} == {"easy"}


def test_mock_exam_generic_labels_wrap_around():
	exam = mock_exam("nothing useful", _config(question_count=10), "Bio")
	assert exam.questions[0].topic == "Fundamental Concepts"
	assert exam.questions[8].topic == "Fundamental Concepts"
	assert exam.questions[9].topic == "Key Principles"


def test_fallback_is_deterministic(sample_syllabus):
	config = _config(difficulty="mixed", question_count=9)
	first = _synthesize(StubBackend(error=RuntimeError("down")), sample_syllabus, config)
	second = _synthesize(StubBackend(error=RuntimeError("down")), sample_syllabus, config)
	assert first.model_dump() == second.model_dump()


def test_text_past_prefix_never_matters(sample_syllabus):
	config = _config(question_count=6)
	limit = len(sample_syllabus)
	extended = sample_syllabus + "\nTopic: Hidden appendix\nCourse: Something Else\n2. Extra objective"
	base = _synthesize(StubBackend(error=RuntimeError("down")), sample_syllabus, config, prefix_chars=limit)
	longer = _synthesize(StubBackend(error=RuntimeError("down")), extended, config, prefix_chars=limit)
	assert base.model_dump() == longer.model_dump()

	seen = StubBackend(error=RuntimeError("down"))
	_synthesize(seen, extended, config, prefix_chars=limit)
	assert "Hidden appendix" not in seen.prompts[0]


# ---- topics ----

def test_extract_topics_clamps_and_filters():
	reply = json.dumps({"topics": [
		{"name": "Cells", "importance": 15},
		{"name": "", "importance": 3},
		{"name": "Genetics", "importance": "7"},
		{"importance": 4},
	]})
	topics = asyncio.run(ExamSynthesizer(StubBackend(reply=reply)).extract_topics("syllabus"))
	assert [(t.name, t.importance) for t in topics] == [("Cells", 10), ("Genetics", 7)]


def test_extract_topics_non_finite_importance_keeps_other_topics():
	reply = '{"topics": [{"name": "Cells", "importance": 7}, {"name": "Genes", "importance": Infinity}, {"name": "Proteins", "importance": NaN}]}'
	topics = asyncio.run(ExamSynthesizer(StubBackend(reply=reply)).extract_topics("syllabus"))
	assert [(t.name, t.importance) for t in topics] == [("Cells", 7), ("Genes", 5), ("Proteins", 5)]


@pytest.mark.parametrize("backend", [
	StubBackend(error=RuntimeError("down")),
	StubBackend(reply='{"topics": []}'),
	None,
])
def test_extract_topics_defaults(backend):
	topics = asyncio.run(ExamSynthesizer(backend).extract_topics("syllabus"))
	assert topics == DEFAULT_TOPICS
