from __future__ import annotations

import asyncio

import pytest

from frontend.renderer import (
    IncrementalRenderer,
    RendererBusy,
    RevealOutcome,
    RevealState,
    clamp_scroll,
)
from frontend.view import TranscriptView


class Element:
    def __init__(self):
        self.history = []
        self._text = ""

    @property
    def text(self):
        return self._text

    @text.setter
    def text(self, value):
        self._text = value
        self.history.append(value)


class Anchor:
    def __init__(self, offset_top):
        self.offset_top = offset_top


class Container:
    """Scroll container whose content grows with the revealed element."""

    offset_top = 10
    client_height = 200

    def __init__(self, element, base_height=150):
        self.element = element
        self.base_height = base_height
        self.assigned = []

    @property
    def scroll_height(self):
        return self.base_height + 10 * len(self.element.text.split())

    @property
    def scroll_top(self):
        return self.assigned[-1] if self.assigned else 0

    @scroll_top.setter
    def scroll_top(self, value):
        self.assigned.append(value)


def _recording_sleep(delays):
    async def sleep(delay):
        delays.append(delay)

    return sleep


def test_reveals_one_word_per_tick_in_order():
    delays = []
    element = Element()
    renderer = IncrementalRenderer(Container(element), sleep=_recording_sleep(delays))

    outcome = asyncio.run(renderer.reveal("The  answer\nis   four", element))

    assert outcome is RevealOutcome.COMPLETED
    assert element.history == ["The", "The answer", "The answer is", "The answer is four"]
    assert element.text == "The answer is four"
    assert delays == [0.03] * 4
    assert renderer.state is RevealState.IDLE


def test_empty_reply_completes_immediately():
    delays = []
    element = Element()
    finished = []
    renderer = IncrementalRenderer(Container(element), sleep=_recording_sleep(delays))

    outcome = asyncio.run(renderer.reveal("", element, on_complete=finished.append))

    assert outcome is RevealOutcome.COMPLETED
    assert finished == [RevealOutcome.COMPLETED]
    assert element.history == []
    assert delays == []


def test_each_tick_clamps_scroll_to_the_question():
    element = Element()
    container = Container(element, base_height=150)
    renderer = IncrementalRenderer(container, sleep=_recording_sleep([]))
    anchor = Anchor(offset_top=110)  # question_top = 100

    asyncio.run(renderer.reveal(" ".join(f"w{i}" for i in range(20)), element, anchor=anchor))

    expected = []
    for words in range(1, 21):
        max_scroll = 150 + 10 * words - 200
        expected.append(min(max_scroll, 100))
    assert container.assigned == expected
    # starts bottom-anchored, then holds the question at the top
    assert container.assigned[0] == -40
    assert container.assigned[-1] == 100


def test_without_anchor_scrolls_to_bottom():
    element = Element()
    container = Container(element)
    renderer = IncrementalRenderer(container, sleep=_recording_sleep([]))

    asyncio.run(renderer.reveal("a b", element))

    assert container.assigned == [160, 170]


def test_clamp_scroll():
    assert clamp_scroll(question_top=100, max_scroll=40) == 40
    assert clamp_scroll(question_top=100, max_scroll=400) == 100


def test_scroll_clamp_against_transcript_view():
    view = TranscriptView(width=20, height=6)
    for i in range(4):
        view.add_message(f"earlier message {i}", "outgoing")
    question = view.add_message("What is 2+2?", "outgoing")
    answer = view.add_message("", "incoming")
    renderer = IncrementalRenderer(view, sleep=_recording_sleep([]))
    seen = []

    async def scenario():
        async def sleep(delay):
            if answer.text:
                seen.append((view.scroll_top, min(view.scroll_height - view.client_height, question.offset_top)))

        renderer._sleep = sleep
        await renderer.reveal(" ".join(["four"] * 30), answer, anchor=question)

    asyncio.run(scenario())
    assert seen
    assert all(actual == expected for actual, expected in seen)
    assert view.scroll_top == question.offset_top


def test_second_reveal_while_busy_is_rejected():
    element = Element()

    async def scenario():
        release = asyncio.Event()

        async def sleep(delay):
            await release.wait()

        renderer = IncrementalRenderer(Container(element), sleep=sleep)
        task = asyncio.create_task(renderer.reveal("one two", element))
        await asyncio.sleep(0)
        assert renderer.is_revealing
        with pytest.raises(RendererBusy):
            await renderer.reveal("other", Element())
        release.set()
        return await task

    assert asyncio.run(scenario()) is RevealOutcome.COMPLETED
    assert element.text == "one two"


def test_cancel_stops_before_the_next_word():
    element = Element()
    finished = []
    renderer = None
    ticks = []

    async def sleep(delay):
        ticks.append(delay)
        if len(ticks) == 3:
            assert renderer.cancel()

    renderer = IncrementalRenderer(Container(element), sleep=sleep)
    outcome = asyncio.run(renderer.reveal("a b c d e", element, on_complete=finished.append))

    assert outcome is RevealOutcome.CANCELLED
    assert finished == [RevealOutcome.CANCELLED]
    assert element.text == "a b"
    assert renderer.state is RevealState.IDLE
    assert renderer.cancel() is False
