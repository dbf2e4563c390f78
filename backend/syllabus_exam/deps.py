from __future__ import annotations
from typing import AsyncIterator

from fastapi import Request

from .gemini_client import GeminiClient, GenerationConfig
from .settings import settings
from .synthesizer import ExamSynthesizer


async def get_synthesizer(request: Request) -> AsyncIterator[ExamSynthesizer]:
	config: GenerationConfig = request.app.state.generation_config
	client = GeminiClient(config) if config.configured else None
	try:
		yield ExamSynthesizer(client, prefix_chars=settings.syllabus_prefix_chars)
	finally:
		if client is not None:
			await client.aclose()
