from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

import httpx

from .settings import Settings

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
	async def generate(self, prompt: str) -> str: ...


@dataclass(frozen=True)
class GenerationConfig:
	"""Backend parameters, built once at startup and shared by reference."""

	api_key: Optional[str]
	provider: str = "ai_studio"
	model: str = "gemini-1.5-pro"
	vertex_region: str = "us-central1"
	vertex_project: Optional[str] = None
	temperature: float = 0.7
	top_p: float = 0.9
	top_k: int = 16
	max_output_tokens: int = 8192
	timeout_seconds: float = 30.0
	openrouter_api_key: Optional[str] = None
	openrouter_model: str = "x-ai/grok-4-fast:free"
	openrouter_base_url: str = "https://openrouter.ai/api/v1/chat/completions"
	openrouter_referer: str = "https://localhost"
	openrouter_title: str = "Syllabus Exam Generator"

	@classmethod
	def from_settings(cls, settings: Settings) -> "GenerationConfig":
		return cls(
			api_key=settings.gemini_api_key,
			provider=settings.gemini_provider,
			model=settings.gemini_model,
			vertex_region=settings.vertex_region,
			vertex_project=settings.vertex_project,
			temperature=settings.gemini_temperature,
			top_p=settings.gemini_top_p,
			top_k=settings.gemini_top_k,
			max_output_tokens=settings.gemini_max_output_tokens,
			timeout_seconds=settings.gemini_timeout_seconds,
			openrouter_api_key=settings.openrouter_api_key,
			openrouter_model=settings.openrouter_model,
			openrouter_base_url=settings.openrouter_base_url,
			openrouter_referer=settings.openrouter_referer,
			openrouter_title=settings.openrouter_title,
		)

	@property
	def configured(self) -> bool:
		return bool(self.api_key)


class GeminiClient:
	def __init__(self, config: GenerationConfig, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
		if not config.api_key:
			raise ValueError("GEMINI_API_KEY is not configured")
		self.config = config
		self.api_key = config.api_key
		self.model = config.model
		if config.provider == "vertex":
			region = config.vertex_region
			project = config.vertex_project or "placeholder-project"
			# Vertex AI Generative REST endpoint (API key via header)
			self.base_url = (
				f"https://{region}-aiplatform.googleapis.com/v1/projects/{project}/locations/{region}/publishers/google/models/{self.model}:generateContent"
			)
			self._auth_in_query = False
		else:
			# Google AI Studio (Generative Language API)
			self.base_url = f"https://generativelanguage.googleapis.com/v1beta/models/{self.model}:generateContent"
			self._auth_in_query = True
		self._client = httpx.AsyncClient(timeout=config.timeout_seconds, transport=transport)
		self._fallback_client: Optional[httpx.AsyncClient] = None
		self._fallback_enabled = bool(config.openrouter_api_key)
		self._openrouter_headers = {
			"Authorization": f"Bearer {config.openrouter_api_key}" if config.openrouter_api_key else "",
			"Content-Type": "application/json",
			"HTTP-Referer": config.openrouter_referer,
			"X-Title": config.openrouter_title,
		}
		if self._fallback_enabled:
			self._fallback_client = httpx.AsyncClient(timeout=config.timeout_seconds, transport=transport)

	async def generate(self, prompt: str) -> str:
		payload: Dict[str, Any] = {
			"contents": [{"parts": [{"text": prompt}]}],
			"generationConfig": {
				"temperature": self.config.temperature,
				"topP": self.config.top_p,
				"topK": self.config.top_k,
				"maxOutputTokens": self.config.max_output_tokens,
			},
		}
		params: Dict[str, Any] = {}
		headers: Dict[str, str] = {}
		if self._auth_in_query:
			params["key"] = self.api_key
		else:
			headers["x-goog-api-key"] = self.api_key
		last_error: Optional[Exception] = None
		try:
			r = await self._client.post(self.base_url, params=params, headers=headers, json=payload)
			r.raise_for_status()
		except httpx.HTTPStatusError as http_err:
			last_error = http_err
		except httpx.RequestError as net_err:
			last_error = net_err
		if last_error is None:
			try:
				data = r.json()
				return data["candidates"][0]["content"]["parts"][0]["text"]
			except (ValueError, KeyError, IndexError, TypeError):
				last_error = RuntimeError(f"Unexpected Gemini response: {r.text[:500]}")
		if not self._fallback_enabled:
			raise last_error
		logger.warning("Gemini call failed (%s); retrying via OpenRouter", last_error)
		return await self._fallback_generate(prompt, last_error)

	async def aclose(self) -> None:
		await self._client.aclose()
		if self._fallback_client is not None:
			await self._fallback_client.aclose()

	async def _fallback_generate(self, prompt: str, primary_error: Exception) -> str:
		headers = {k: v for k, v in self._openrouter_headers.items() if v}
		payload: Dict[str, Any] = {
			"model": self.config.openrouter_model,
			"messages": [{"role": "user", "content": prompt}],
			"temperature": self.config.temperature,
			"max_tokens": self.config.max_output_tokens,
		}
		try:
			r = await self._fallback_client.post(
				self.config.openrouter_base_url,
				headers=headers,
				json=payload,
			)
			r.raise_for_status()
			data = r.json()
			return data["choices"][0]["message"]["content"]
		except Exception as fallback_err:
			raise RuntimeError(
				f"Gemini primary call failed ({primary_error}); fallback via OpenRouter also failed"
			) from fallback_err
