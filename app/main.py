from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
from pydantic import BaseModel, ConfigDict, Field
import uvicorn

from config.settings import Settings, get_settings
from relay.core.memory import SessionStore
from relay.core.quota import RateLimitStore
from relay.exceptions import ConfigurationError, RelayError
from relay.relay import ChatRelay, ChatRequest
from relay.upstream import build_upstream


logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="[%(asctime)s] %(levelname)s - %(message)s",
)
logger = logging.getLogger("chat_relay")


class ChatBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: Optional[str] = Field(default=None, description="User's latest message")
    user_id: Optional[str] = Field(
        default=None, alias="userId", description="Stable identifier of the user (quota key)"
    )
    session_id: Optional[str] = Field(
        default=None, alias="sessionId", description="Identifier of the conversation (history key)"
    )


def build_relay(settings: Settings) -> ChatRelay:
    return ChatRelay(
        quota=RateLimitStore(
            daily_limit=settings.daily_limit, max_users=settings.max_tracked_users
        ),
        sessions=SessionStore(max_sessions=settings.max_sessions),
        upstream=build_upstream(settings),
        max_output_tokens=settings.max_output_tokens,
    )


def create_app(settings: Optional[Settings] = None, relay: Optional[ChatRelay] = None) -> FastAPI:
    settings = settings or get_settings()
    check_api_key = relay is None
    relay = relay or build_relay(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "Chat relay starting: model=%s backend=%s daily_limit=%s key_set=%s",
            settings.gemini_model,
            settings.upstream_backend,
            relay.quota.daily_limit,
            bool(settings.gemini_api_key),
        )
        yield
        await relay.upstream.aclose()

    app = FastAPI(title="Gemini Chat Relay", version="1.0.0", lifespan=lifespan)
    app.state.relay = relay

    # CORS: allow local frontend during development
    if settings.app_env.lower() in {"dev", "development", "local"}:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.exception_handler(RelayError)
    async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
        return JSONResponse(status_code=exc.http_status, content=exc.to_body())

    @app.exception_handler(RequestValidationError)
    async def body_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.info("Rejected malformed chat body: %s", exc.errors())
        return JSONResponse(status_code=400, content={"error": "Invalid request body"})

    @app.post("/api/chat")
    async def chat(body: ChatBody, request: Request) -> Dict[str, Any]:
        if check_api_key and not settings.gemini_api_key:
            raise ConfigurationError("Missing GEMINI_API_KEY in environment or .env")

        client_host = request.client.host if request.client else None
        logger.info(
            "Incoming chat: user_id=%s session_id=%s host=%s message_len=%s",
            body.user_id,
            body.session_id,
            client_host,
            len(body.message or ""),
        )
        try:
            reply = await relay.handle(
                ChatRequest(
                    text=body.message,
                    user_id=body.user_id,
                    session_id=body.session_id,
                    client_host=client_host,
                )
            )
        except RelayError:
            raise
        except Exception as e:
            logger.exception("Chat processing failed: %s", e)
            return JSONResponse(status_code=500, content={"error": "Something went wrong"})
        return {"reply": reply.text}

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run("app.main:app", host=settings.host, port=settings.port)
