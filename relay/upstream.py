from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

import httpx
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI

from config.settings import Settings
from relay.core.memory import ConversationTurn


NO_RESPONSE = "No response from AI"


class UpstreamError(Exception):
    """Model call failed.

    ``message`` is safe to show to end users; ``detail`` holds whatever the
    upstream sent back and is meant for server logs only.
    """

    def __init__(self, message: str, detail: Any = None):
        self.message = message
        self.detail = detail
        super().__init__(message)


class UpstreamClient(Protocol):
    async def generate(
        self,
        system_instruction: str,
        contents: Sequence[ConversationTurn],
        max_output_tokens: int,
    ) -> str:
        ...

    async def aclose(self) -> None:
        ...


def build_payload(
    system_instruction: str,
    contents: Sequence[ConversationTurn],
    max_output_tokens: int,
) -> Dict[str, Any]:
    return {
        "systemInstruction": {"parts": [{"text": system_instruction}]},
        "contents": [turn.to_content() for turn in contents],
        "generationConfig": {"maxOutputTokens": max_output_tokens},
    }


def extract_reply(data: Any) -> str:
    if not isinstance(data, dict):
        raise UpstreamError("Something went wrong", detail=data)

    error = data.get("error")
    if error:
        raise UpstreamError("AI service error", detail=error)

    candidates = data.get("candidates") or []
    if not candidates:
        raise UpstreamError(NO_RESPONSE, detail=data)

    first = candidates[0] if isinstance(candidates[0], dict) else {}
    parts = (first.get("content") or {}).get("parts") or []
    texts = [p["text"] for p in parts if isinstance(p, dict) and p.get("text")]
    if not texts:
        raise UpstreamError(NO_RESPONSE, detail=first)
    return "".join(texts)


class GeminiRestClient:
    """Calls the Gemini ``generateContent`` REST endpoint directly."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        api_base: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.api_base = api_base.rstrip("/")
        if http_client is None:
            http_client = httpx.AsyncClient(timeout=timeout)
        self._client = http_client

    @property
    def endpoint(self) -> str:
        return f"{self.api_base}/models/{self.model}:generateContent"

    async def generate(
        self,
        system_instruction: str,
        contents: Sequence[ConversationTurn],
        max_output_tokens: int,
    ) -> str:
        payload = build_payload(system_instruction, contents, max_output_tokens)
        headers = {"x-goog-api-key": self.api_key or ""}
        try:
            response = await self._client.post(self.endpoint, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            raise UpstreamError("Something went wrong", detail=f"{type(exc).__name__}: {exc}") from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamError(
                "Something went wrong",
                detail=f"status={response.status_code} body={response.text[:500]}",
            ) from exc

        if response.status_code >= 400 and not (isinstance(data, dict) and data.get("error")):
            raise UpstreamError("AI service error", detail=f"status={response.status_code} body={data}")
        return extract_reply(data)

    async def aclose(self) -> None:
        await self._client.aclose()


def to_lc_messages(history: Sequence[ConversationTurn]) -> List[BaseMessage]:
    messages: List[BaseMessage] = []
    for turn in history:
        if turn.role == "model":
            messages.append(AIMessage(content=turn.text))
        else:
            messages.append(HumanMessage(content=turn.text))
    return messages


def _message_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    texts = []
    for part in content or []:
        if isinstance(part, str):
            texts.append(part)
        elif isinstance(part, dict) and part.get("text"):
            texts.append(part["text"])
    return "".join(texts)


class LangChainGeminiClient:
    """Same contract as ``GeminiRestClient`` but goes through ``ChatGoogleGenerativeAI``."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        llm_factory: Optional[Callable[[int], Any]] = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self._llm_factory = llm_factory or self._default_llm
        self._llms: Dict[int, Any] = {}

    def _default_llm(self, max_output_tokens: int) -> ChatGoogleGenerativeAI:
        return ChatGoogleGenerativeAI(
            model=self.model,
            google_api_key=self.api_key,
            max_output_tokens=max_output_tokens,
        )

    def _llm(self, max_output_tokens: int) -> Any:
        if max_output_tokens not in self._llms:
            self._llms[max_output_tokens] = self._llm_factory(max_output_tokens)
        return self._llms[max_output_tokens]

    async def generate(
        self,
        system_instruction: str,
        contents: Sequence[ConversationTurn],
        max_output_tokens: int,
    ) -> str:
        messages = [SystemMessage(content=system_instruction)] + to_lc_messages(contents)
        try:
            result = await self._llm(max_output_tokens).ainvoke(messages)
        except Exception as exc:
            raise UpstreamError("Something went wrong", detail=f"{type(exc).__name__}: {exc}") from exc

        text = _message_text(getattr(result, "content", None))
        if not text.strip():
            raise UpstreamError(NO_RESPONSE, detail=getattr(result, "response_metadata", None))
        return text

    async def aclose(self) -> None:
        self._llms.clear()


def build_upstream(settings: Settings) -> UpstreamClient:
    backend = (settings.upstream_backend or "rest").lower()
    if backend == "langchain":
        return LangChainGeminiClient(api_key=settings.gemini_api_key, model=settings.gemini_model)
    if backend != "rest":
        raise ValueError(f"Unknown UPSTREAM_BACKEND: {settings.upstream_backend!r}")
    return GeminiRestClient(
        api_key=settings.gemini_api_key,
        model=settings.gemini_model,
        api_base=settings.gemini_api_base,
        timeout=settings.upstream_timeout,
    )
