from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from frontend.api import DEFAULT_API_URL, ChatApiClient, load_or_create_user_id
from frontend.view import MessageBubble, TranscriptView
from frontend.widget import ChatWidget, MAX_WORDS, count_words, word_counter_label


logger = logging.getLogger("chat_relay.frontend")

DEFAULT_USER_FILE = Path.home() / ".chat_relay" / "user_id"


def _echo(bubble: MessageBubble, previous: str) -> None:
    if bubble.role != "incoming":
        return
    text = bubble.text
    sys.stdout.write(text[len(previous):] if text.startswith(previous) else text)
    sys.stdout.flush()


async def main(api_url: str, user_file: Path) -> None:
    api = ChatApiClient(api_url=api_url, user_id=load_or_create_user_id(user_file))
    widget = ChatWidget(api, TranscriptView(on_change=_echo))
    print(f"Chatting as {api.user_id} ({api.session_id}). Type /quit to leave.")
    try:
        while True:
            try:
                line = await asyncio.to_thread(input, "> ")
            except EOFError:
                break
            if line.strip() == "/quit":
                break
            if count_words(line) > MAX_WORDS:
                print(word_counter_label(line))
                continue
            if await widget.submit(line):
                sys.stdout.write("\n")
    finally:
        await api.aclose()


def run() -> None:
    parser = argparse.ArgumentParser(description="Terminal client for the chat relay")
    parser.add_argument("--url", default=DEFAULT_API_URL, help="chat endpoint URL")
    parser.add_argument(
        "--user-file",
        type=Path,
        default=DEFAULT_USER_FILE,
        help="where the persistent user id is kept",
    )
    args = parser.parse_args()
    logging.basicConfig(level=logging.WARNING, format="[%(asctime)s] %(levelname)s - %(message)s")
    try:
        asyncio.run(main(args.url, args.user_file))
    except KeyboardInterrupt:
        logger.info("Interrupted")


if __name__ == "__main__":
    run()
