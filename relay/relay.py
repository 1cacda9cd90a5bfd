from __future__ import annotations

import ipaddress
import logging
from dataclasses import dataclass
from typing import Optional

from relay.core.memory import ConversationTurn, SessionStore
from relay.core.prompt import SYSTEM_PROMPT
from relay.core.quota import RateLimitStore
from relay.exceptions import QuotaExceeded, RequestValidationFailed, UpstreamFailure
from relay.upstream import UpstreamClient, UpstreamError


logger = logging.getLogger("chat_relay.relay")

DEFAULT_MAX_OUTPUT_TOKENS = 1300


@dataclass(frozen=True)
class ChatRequest:
    text: Optional[str]
    user_id: Optional[str]
    session_id: Optional[str]
    client_host: Optional[str] = None


@dataclass(frozen=True)
class ChatReply:
    text: str


def is_loopback(host: Optional[str]) -> bool:
    if not host:
        return False
    if host == "localhost":
        return True
    try:
        address = ipaddress.ip_address(host.split("%", 1)[0])
    except ValueError:
        return False
    mapped = getattr(address, "ipv4_mapped", None)
    if mapped is not None:
        return mapped.is_loopback
    return address.is_loopback


class ChatRelay:
    """Runs one chat exchange: validate, check quota, record, ask the model, reply."""

    def __init__(
        self,
        quota: RateLimitStore,
        sessions: SessionStore,
        upstream: UpstreamClient,
        system_instruction: str = SYSTEM_PROMPT,
        max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS,
    ) -> None:
        self.quota = quota
        self.sessions = sessions
        self.upstream = upstream
        self.system_instruction = system_instruction
        self.max_output_tokens = max_output_tokens

    async def handle(self, request: ChatRequest) -> ChatReply:
        if not request.user_id or not request.session_id:
            raise RequestValidationFailed("User ID and Session ID are required")
        if not request.text or not request.text.strip():
            raise RequestValidationFailed("Message is required")

        exempt = is_loopback(request.client_host)
        decision = await self.quota.check_and_consume(request.user_id, is_exempt=exempt)
        if not decision.allowed:
            logger.info("Quota exhausted: user_id=%s limit=%s", request.user_id, self.quota.daily_limit)
            raise QuotaExceeded(self.quota.daily_limit)

        committed = False
        try:
            async with self.sessions.lock(request.session_id):
                self.sessions.append_turn(
                    request.session_id, ConversationTurn(role="user", text=request.text)
                )
                transcript = self.sessions.get_transcript(request.session_id)
                logger.info(
                    "Relaying: user_id=%s session_id=%s turns=%s exempt=%s",
                    request.user_id,
                    request.session_id,
                    len(transcript),
                    exempt,
                )
                try:
                    reply = await self.upstream.generate(
                        self.system_instruction, transcript, self.max_output_tokens
                    )
                except UpstreamError as exc:
                    logger.error(
                        "Upstream call failed: session_id=%s message=%s detail=%s",
                        request.session_id,
                        exc.message,
                        exc.detail,
                    )
                    raise UpstreamFailure(exc.message) from exc

                self.sessions.append_turn(
                    request.session_id, ConversationTurn(role="model", text=reply)
                )
            await self.quota.commit(decision)
            committed = True
        finally:
            if not committed:
                await self.quota.release(decision)

        logger.info("Model replied: session_id=%s chars=%s", request.session_id, len(reply))
        return ChatReply(text=reply)
