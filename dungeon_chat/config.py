"""Runtime settings read from the environment (and a repo-root .env file)."""

import os
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv

ROOT = Path(__file__).parent.parent
load_dotenv(ROOT / ".env")

DEFAULT_DATA_DIR = ROOT / "data"


class Settings:
    """
    Environment variables.
        - DATA_DIR             where room JSON documents live (default ./data)
        - LLM_PROVIDER_URL     base URL of the AI backend; unset means "not configured"
        - LLM_API_KEY          bearer token, optional
        - LLM_PROVIDER_FORMAT  "openai" (chat completions), "ollama" (/api/chat) or
                               "echo" (offline, no URL needed)
        - LLM_MODEL            model name sent with every request
        - LLM_TIMEOUT          HTTP timeout in seconds
        - LOG_LEVEL            root log level
    """

    def __init__(self) -> None:
        self.DATA_DIR: Path = Path(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR)))
        self.LLM_PROVIDER_URL: str = os.getenv("LLM_PROVIDER_URL", "")
        self.LLM_API_KEY: str = os.getenv("LLM_API_KEY", "")
        provider_format = os.getenv("LLM_PROVIDER_FORMAT", "openai")
        self.LLM_PROVIDER_FORMAT: Literal["openai", "ollama", "echo"] = (
            provider_format if provider_format in ("ollama", "echo") else "openai"
        )
        self.LLM_MODEL: str = os.getenv("LLM_MODEL", "gpt-4o-mini")
        self.LLM_TIMEOUT: float = float(os.getenv("LLM_TIMEOUT", "120"))
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
        self.HOST: str = os.getenv("HOST", "0.0.0.0")
        self.PORT: int = int(os.getenv("PORT", "13013"))

    @property
    def llm_configured(self) -> bool:
        return self.LLM_PROVIDER_FORMAT == "echo" or bool(self.LLM_PROVIDER_URL)


settings = Settings()
