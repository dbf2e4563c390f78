from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
	gemini_api_key: str | None = Field(default=None, validation_alias="GEMINI_API_KEY")
	# Provider can be "vertex" (Vertex AI Express) or "ai_studio" (Generative Language API)
	gemini_provider: str = Field(default="ai_studio", validation_alias="GEMINI_PROVIDER")
	gemini_model: str = Field(default="gemini-1.5-pro", validation_alias="GEMINI_MODEL")
	# Vertex configuration
	vertex_region: str = Field(default="us-central1", validation_alias="GEMINI_VERTEX_REGION")
	vertex_project: str | None = Field(default=None, validation_alias="GEMINI_VERTEX_PROJECT")

	# Sampling for exam generation; favour varied phrasing over determinism
	gemini_temperature: float = Field(default=0.7, validation_alias="GEMINI_TEMPERATURE")
	gemini_top_p: float = Field(default=0.9, validation_alias="GEMINI_TOP_P")
	gemini_top_k: int = Field(default=16, validation_alias="GEMINI_TOP_K")
	gemini_max_output_tokens: int = Field(default=8192, validation_alias="GEMINI_MAX_OUTPUT_TOKENS")
	gemini_timeout_seconds: float = Field(default=30.0, validation_alias="GEMINI_TIMEOUT_SECONDS")

	# OpenRouter fallback configuration (optional)
	openrouter_api_key: str | None = Field(default=None, validation_alias="OPENROUTER_API_KEY")
	openrouter_model: str = Field(default="x-ai/grok-4-fast:free", validation_alias="OPENROUTER_MODEL")
	openrouter_base_url: str = Field(default="https://openrouter.ai/api/v1/chat/completions", validation_alias="OPENROUTER_BASE_URL")
	openrouter_referer: str = Field(default="https://localhost", validation_alias="OPENROUTER_HTTP_REFERER")
	openrouter_title: str = Field(default="Syllabus Exam Generator", validation_alias="OPENROUTER_TITLE")

	# Only this many leading characters of a syllabus reach the model
	syllabus_prefix_chars: int = Field(default=15000, validation_alias="SYLLABUS_PREFIX_CHARS")
	max_upload_bytes: int = Field(default=10 * 1024 * 1024, validation_alias="MAX_UPLOAD_BYTES")

	# Syllabus retention (0 keeps everything)
	retention_days: int = Field(default=0, validation_alias="RETENTION_DAYS")

	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

	# Bind address for `python -m syllabus_exam`
	host: str = Field(default="127.0.0.1", validation_alias="HOST")
	port: int = Field(default=8000, validation_alias="PORT")

	# Database
	database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
