"""Shared route helpers: caller identity and the configured LLM."""

from fastapi import Header, Request

from dungeon_chat.errors import ConfigurationError
from dungeon_chat.llm import LLM
from dungeon_chat.models import Identity


def get_identity(x_user_id: str | None = Header(default=None)) -> Identity | None:
    """Identity from the X-User-Id header set by the auth proxy, if any."""
    if not x_user_id or not x_user_id.strip():
        return None
    return Identity(subject=x_user_id.strip())


def require_llm(request: Request) -> LLM:
    """The app's LLM client. Called after request validation, not as a dependency."""
    llm = request.app.state.llm
    if llm is None:
        raise ConfigurationError("Missing LLM configuration")
    return llm
