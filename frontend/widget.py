from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from frontend.api import ChatApiClient, ChatApiError
from frontend.renderer import IncrementalRenderer, RevealOutcome
from frontend.view import TranscriptView


logger = logging.getLogger("chat_relay.frontend.widget")

MAX_WORDS = 100
LOADING_DELAY = 0.5


def count_words(text: str) -> int:
    return len(text.split())


def word_counter_label(text: str, max_words: int = MAX_WORDS) -> str:
    words = count_words(text)
    if words > max_words:
        return f"Maximum {max_words} words allowed"
    return f"{words} / {max_words}"


class ChatWidget:
    """Submission side of the chat window.

    Only one response may be in progress at a time; a submission made while
    one is running is dropped, not queued. The flag clears when the reveal
    ends or the request fails.
    """

    def __init__(
        self,
        api: ChatApiClient,
        view: TranscriptView,
        renderer: Optional[IncrementalRenderer] = None,
        max_words: int = MAX_WORDS,
        loading_delay: float = LOADING_DELAY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.api = api
        self.view = view
        self.renderer = renderer or IncrementalRenderer(view, sleep=sleep)
        self.max_words = max_words
        self.loading_delay = loading_delay
        self._sleep = sleep
        self.is_response_generating = False

    async def submit(self, raw_text: str) -> bool:
        """Send one message. Returns False when the submission was rejected."""
        message = (raw_text or "").strip()
        if not message or self.is_response_generating:
            return False
        if count_words(message) > self.max_words:
            return False

        self.is_response_generating = True
        try:
            self.view.add_message(message, "outgoing")
            self.view.scroll_to_bottom()
            await self._sleep(self.loading_delay)

            incoming = self.view.add_message("", "incoming", loading=True)
            self.view.scroll_to_bottom()
            try:
                reply = await self.api.send(message)
            except ChatApiError as exc:
                logger.info("Chat request failed: %s", exc)
                incoming.loading = False
                incoming.classes.add("error")
                incoming.text = str(exc)
                return True

            incoming.loading = False
            outcome = await self.renderer.reveal(reply, incoming, anchor=self.view.previous_of(incoming))
            if outcome is RevealOutcome.CANCELLED:
                logger.info("Reveal cancelled after %s chars", len(incoming.text))
            return True
        finally:
            self.is_response_generating = False

    def cancel(self) -> bool:
        return self.renderer.cancel()
