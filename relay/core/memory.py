"""Server-side conversation memory.

Each session id maps to its full transcript, which is resent to the model as
context on every turn. Transcripts are never trimmed; the number of sessions
kept is bounded and the least recently used session is dropped first.
"""

from __future__ import annotations

import asyncio
from collections import OrderedDict
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Dict, List, Literal, Optional


Role = Literal["user", "model"]


@dataclass(frozen=True)
class ConversationTurn:
    role: Role
    text: str

    def to_content(self) -> Dict:
        return {"role": self.role, "parts": [{"text": self.text}]}


class SessionStore:
    def __init__(self, max_sessions: Optional[int] = 10_000) -> None:
        self.max_sessions = max_sessions
        self._transcripts: "OrderedDict[str, List[ConversationTurn]]" = OrderedDict()
        self._locks: Dict[str, asyncio.Lock] = {}

    def _transcript(self, session_id: str) -> List[ConversationTurn]:
        transcript = self._transcripts.get(session_id)
        if transcript is None:
            transcript = []
            self._transcripts[session_id] = transcript
            self._evict()
        else:
            self._transcripts.move_to_end(session_id)
        return transcript

    def _evict(self) -> None:
        if self.max_sessions is None:
            return
        while len(self._transcripts) > self.max_sessions:
            victim = next(
                (sid for sid in self._transcripts if not self._in_flight(sid)), None
            )
            if victim is None:
                break
            del self._transcripts[victim]
            self._locks.pop(victim, None)

    def _in_flight(self, session_id: str) -> bool:
        lock = self._locks.get(session_id)
        return lock is not None and lock.locked()

    def append_turn(self, session_id: str, turn: ConversationTurn) -> None:
        self._transcript(session_id).append(turn)

    def get_transcript(self, session_id: str) -> List[ConversationTurn]:
        return list(self._transcript(session_id))

    @asynccontextmanager
    async def lock(self, session_id: str) -> AsyncIterator[None]:
        """Hold the session for one user/model exchange."""
        lock = self._locks.setdefault(session_id, asyncio.Lock())
        async with lock:
            yield

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._transcripts

    def __len__(self) -> int:
        return len(self._transcripts)
