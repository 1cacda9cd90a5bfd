"""Line-based transcript view used by the terminal client.

It plays the role of the chat window: message bubbles stacked top to bottom,
each taking as many rows as its wrapped text needs, inside a scroll container
of fixed visible height.
"""

from __future__ import annotations

import textwrap
from typing import Callable, List, Optional, Set


BUBBLE_GAP = 1


class MessageBubble:
    """One chat message in the view. ``role`` is ``"outgoing"`` or ``"incoming"``."""

    def __init__(
        self,
        role: str,
        text: str = "",
        loading: bool = False,
        view: Optional["TranscriptView"] = None,
    ) -> None:
        self.role = role
        self.loading = loading
        self.classes: Set[str] = set()
        self.view = view
        self._text = text

    def __repr__(self) -> str:
        return f"MessageBubble(role={self.role!r}, text={self._text!r}, classes={sorted(self.classes)!r})"

    @property
    def text(self) -> str:
        return self._text

    @text.setter
    def text(self, value: str) -> None:
        previous = self._text
        self._text = value
        if self.view is not None:
            self.view._changed(self, previous)

    @property
    def lines(self) -> List[str]:
        width = self.view.width if self.view is not None else 80
        if self.loading and not self.text:
            return ["..."]
        wrapped: List[str] = []
        for paragraph in self.text.split("\n"):
            wrapped.extend(textwrap.wrap(paragraph, width) or [""])
        return wrapped

    @property
    def height(self) -> int:
        return len(self.lines)

    @property
    def offset_top(self) -> int:
        if self.view is None:
            return 0
        return self.view.offset_of(self)


class TranscriptView:
    offset_top = 0

    def __init__(
        self,
        width: int = 80,
        height: int = 20,
        on_change: Optional[Callable[[MessageBubble, str], None]] = None,
    ) -> None:
        self.width = width
        self.client_height = height
        self.bubbles: List[MessageBubble] = []
        self.on_change = on_change
        self._scroll_top = 0

    def add_message(self, text: str, role: str, loading: bool = False) -> MessageBubble:
        bubble = MessageBubble(role=role, text=text, loading=loading, view=self)
        self.bubbles.append(bubble)
        return bubble

    def previous_of(self, bubble: MessageBubble) -> Optional[MessageBubble]:
        index = self.bubbles.index(bubble)
        return self.bubbles[index - 1] if index > 0 else None

    def offset_of(self, bubble: MessageBubble) -> int:
        offset = 0
        for item in self.bubbles:
            if item is bubble:
                return offset
            offset += item.height + BUBBLE_GAP
        raise ValueError("bubble is not part of this view")

    @property
    def scroll_height(self) -> int:
        if not self.bubbles:
            return 0
        return sum(b.height for b in self.bubbles) + BUBBLE_GAP * (len(self.bubbles) - 1)

    @property
    def max_scroll(self) -> int:
        return max(0, self.scroll_height - self.client_height)

    @property
    def scroll_top(self) -> int:
        return self._scroll_top

    @scroll_top.setter
    def scroll_top(self, value: int) -> None:
        self._scroll_top = min(max(0, int(value)), self.max_scroll)

    def scroll_to_bottom(self) -> None:
        self.scroll_top = self.scroll_height

    def all_lines(self) -> List[str]:
        rows: List[str] = []
        for index, bubble in enumerate(self.bubbles):
            if index:
                rows.extend([""] * BUBBLE_GAP)
            rows.extend(bubble.lines)
        return rows

    def visible_lines(self) -> List[str]:
        return self.all_lines()[self._scroll_top:self._scroll_top + self.client_height]

    def _changed(self, bubble: MessageBubble, previous: str) -> None:
        if self.on_change is not None:
            self.on_change(bubble, previous)
