from __future__ import annotations

import random
import string
import time
from pathlib import Path
from typing import Optional

import httpx


DEFAULT_API_URL = "http://localhost:3000/api/chat"
_ALPHABET = string.digits + string.ascii_lowercase


class ChatApiError(Exception):
    pass


def _random_suffix(length: int = 9) -> str:
    return "".join(random.choice(_ALPHABET) for _ in range(length))


def new_user_id() -> str:
    return f"user_{int(time.time() * 1000)}_{_random_suffix()}"


def new_session_id() -> str:
    return f"session_{int(time.time() * 1000)}_{_random_suffix()}"


def load_or_create_user_id(path: Path) -> str:
    """Return the user id stored at ``path``, creating and saving one on first use."""
    if path.exists():
        stored = path.read_text(encoding="utf-8").strip()
        if stored:
            return stored
    user_id = new_user_id()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(user_id, encoding="utf-8")
    return user_id


class ChatApiClient:
    def __init__(
        self,
        api_url: str = DEFAULT_API_URL,
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.api_url = api_url
        self.user_id = user_id or new_user_id()
        # one session per client instance, like one per page load
        self.session_id = session_id or new_session_id()
        self._client = http_client or httpx.AsyncClient(timeout=None)

    async def send(self, message: str) -> str:
        payload = {
            "message": message,
            "userId": self.user_id,
            "sessionId": self.session_id,
        }
        try:
            response = await self._client.post(self.api_url, json=payload)
        except httpx.HTTPError as exc:
            raise ChatApiError(str(exc) or "Something went wrong") from exc

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}
        if not response.is_success:
            raise ChatApiError(data.get("error") or data.get("reply") or "Something went wrong")
        reply = data.get("reply")
        if not isinstance(reply, str):
            raise ChatApiError("Something went wrong")
        return reply

    async def aclose(self) -> None:
        await self._client.aclose()
