"""Word-by-word reveal of a finished model reply.

The renderer is a two-state machine. ``reveal`` moves it from IDLE to
REVEALING and back once every word is on screen; ``cancel`` is the only other
way back to IDLE. While revealing, each tick keeps the user's question pinned
at or above the top of the viewport, never scrolling further than the
container allows.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional, Protocol


logger = logging.getLogger("chat_relay.frontend.renderer")

REVEAL_INTERVAL = 0.03


class RevealState(str, Enum):
    IDLE = "idle"
    REVEALING = "revealing"


class RevealOutcome(str, Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class RendererBusy(RuntimeError):
    pass


class TextElement(Protocol):
    text: str


class AnchorElement(Protocol):
    @property
    def offset_top(self) -> int: ...


class ScrollContainer(Protocol):
    scroll_top: int

    @property
    def offset_top(self) -> int: ...

    @property
    def scroll_height(self) -> int: ...

    @property
    def client_height(self) -> int: ...


def clamp_scroll(question_top: int, max_scroll: int) -> int:
    return min(max_scroll, question_top)


class IncrementalRenderer:
    def __init__(
        self,
        container: ScrollContainer,
        interval: float = REVEAL_INTERVAL,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.container = container
        self.interval = interval
        self._sleep = sleep
        self._state = RevealState.IDLE
        self._cancel_requested = False

    @property
    def state(self) -> RevealState:
        return self._state

    @property
    def is_revealing(self) -> bool:
        return self._state is RevealState.REVEALING

    def cancel(self) -> bool:
        """Stop an ongoing reveal before its next word. Returns False when idle."""
        if self._state is not RevealState.REVEALING:
            return False
        self._cancel_requested = True
        return True

    def follow(self, anchor: Optional[AnchorElement]) -> None:
        container = self.container
        if anchor is None:
            container.scroll_top = container.scroll_height
            return
        question_top = anchor.offset_top - container.offset_top
        max_scroll = container.scroll_height - container.client_height
        container.scroll_top = clamp_scroll(question_top, max_scroll)

    async def reveal(
        self,
        text: str,
        element: TextElement,
        anchor: Optional[AnchorElement] = None,
        on_complete: Optional[Callable[[RevealOutcome], None]] = None,
    ) -> RevealOutcome:
        if self._state is RevealState.REVEALING:
            raise RendererBusy("a reply is already being revealed")

        words = text.split()
        self._state = RevealState.REVEALING
        self._cancel_requested = False
        outcome = RevealOutcome.COMPLETED
        try:
            for index, word in enumerate(words):
                await self._sleep(self.interval)
                if self._cancel_requested:
                    outcome = RevealOutcome.CANCELLED
                    break
                element.text += word if index == 0 else " " + word
                self.follow(anchor)
        except asyncio.CancelledError:
            outcome = RevealOutcome.CANCELLED
            raise
        finally:
            self._state = RevealState.IDLE
            self._cancel_requested = False
            logger.debug("Reveal finished: outcome=%s words=%s", outcome.value, len(words))
            if on_complete is not None:
                on_complete(outcome)
        return outcome
