import logging
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from dungeon_chat import storage
from dungeon_chat.config import settings
from dungeon_chat.errors import GameError
from dungeon_chat.llm import LLM, LLMError, build_llm
from dungeon_chat.log import setup_logging
from dungeon_chat.routes import router

logger = logging.getLogger(__name__)


async def game_error_handler(request: Request, exc: GameError) -> PlainTextResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return PlainTextResponse(str(exc), status_code=exc.status_code)


async def llm_error_handler(request: Request, exc: LLMError) -> PlainTextResponse:
    logger.error("%s %s: AI backend error: %s", request.method, request.url.path, exc)
    return PlainTextResponse(str(exc), status_code=502)


def create_app(data_dir: Path | None = None, llm: LLM | None = None) -> FastAPI:
    setup_logging(settings.LOG_LEVEL)
    storage.init_storage(data_dir or settings.DATA_DIR)

    app = FastAPI(title="Dungeon Chat")
    app.state.llm = llm if llm is not None else build_llm(settings)
    if app.state.llm is None:
        logger.warning("LLM_PROVIDER_URL is not set; AI endpoints will answer 500")

    app.add_exception_handler(GameError, game_error_handler)
    app.add_exception_handler(LLMError, llm_error_handler)
    app.include_router(router, prefix="/api")
    return app


# Default app instance for uvicorn (uses DATA_DIR env var or default)
app = create_app()
