from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class Settings:
    """Centralized application settings.

    This keeps environment-variable handling in one place so other modules can
    depend on strongly-typed attributes instead of calling os.getenv
    directly.
    """

    # ASR backend selection: "demo" (default) or "whisper".
    asr_backend: str = os.getenv("ASR_BACKEND", "demo")

    # Backend turning a raw transcript into the structured SOAP payload:
    # "demo" (default, deterministic and offline) or "llm".
    structuring_backend: str = os.getenv("STRUCTURING_BACKEND", "demo")

    # Optional database configuration for SQL-backed visit note storage.
    database_url: Optional[str] = os.getenv("DATABASE_URL")
    use_sql_repos: bool = os.getenv("USE_SQL_REPOS", "false").lower() == "true"

    # Optional settings for external providers.
    openai_api_key: Optional[str] = os.getenv("OPENAI_API_KEY")
    whisper_model_name: str = os.getenv("WHISPER_MODEL_NAME", "base")
    llm_model: str = os.getenv("LLM_MODEL", "gpt-4.1-mini")

    # When false, audit events are still persisted to the visit audit trail
    # but no JSON line is written to the "audit" logger.
    audit_log_enabled: bool = os.getenv("AUDIT_LOG_ENABLED", "true").lower() == "true"

    # CORS configuration: comma-separated origins (e.g. "https://app.example.com,https://admin.example.com").
    # Default is "*" (allow all) which is acceptable for local development but
    # should be tightened in production.
    cors_allow_origins: str = os.getenv("CORS_ALLOW_ORIGINS", "*")


settings = Settings()
