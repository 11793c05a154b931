from collections.abc import AsyncIterator

import pytest

from dungeon_chat.llm import ChatMessage


class StubLLM:
    """Scripted LLM for tests.

    `replies` feeds complete() in order, `chunks` is what stream() yields.
    Set `error` to make every call raise it. Calls are recorded in `calls`
    as (stage, system, messages) tuples.
    """

    def __init__(self) -> None:
        self.replies: list[str] = []
        self.chunks: list[str] = ["The door creaks open."]
        self.error: Exception | None = None
        self.calls: list[tuple[str, str, list[ChatMessage]]] = []

    async def complete(self, stage: str, system: str, messages: list[ChatMessage]) -> str:
        self.calls.append((stage, system, messages))
        if self.error is not None:
            raise self.error
        return self.replies.pop(0) if self.replies else ""

    async def stream(self, stage: str, system: str, messages: list[ChatMessage]) -> AsyncIterator[str]:
        self.calls.append((stage, system, messages))
        if self.error is not None:
            raise self.error
        for chunk in self.chunks:
            yield chunk

    def stages(self) -> list[str]:
        return [call[0] for call in self.calls]


@pytest.fixture
def llm() -> StubLLM:
    return StubLLM()
