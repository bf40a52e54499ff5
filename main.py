from __future__ import annotations

import logging
from uuid import uuid4

from fastapi import FastAPI, Header, HTTPException
from fastapi.responses import JSONResponse, RedirectResponse

from switchboard.config import (
    AppConfig,
    load_config,
    normalize_thread_id,
    with_runtime_gemini_key,
)
from switchboard.models import (
    AwaitingAuthorizationResponse,
    ChatRequest,
    ChatResponse,
    ThreadMessage,
    ThreadSnapshot,
    TurnResult,
    TurnStatus,
)
from switchboard.service import NothingToResume, SupportService
from switchboard.store import ConversationStore

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="Switchboard Support Router", version="0.1.0")
conversation_store = ConversationStore(load_config().conversation_state_path)
_services_by_config: dict[AppConfig, SupportService] = {}


@app.get("/")
async def root() -> RedirectResponse:
    return RedirectResponse(url="/docs", status_code=307)


@app.get("/health")
async def health() -> dict[str, bool]:
    return {"ok": True}


@app.post("/api/chat")
async def chat(
    payload: ChatRequest,
    x_gemini_api_key: str | None = Header(default=None, alias="X-Gemini-Api-Key"),
) -> JSONResponse:
    thread_id = normalize_thread_id(payload.session_id) or uuid4().hex
    LOGGER.info("Processing message", extra={"thread_id": thread_id})
    try:
        service = _support_service(x_gemini_api_key)
        result = await service.run_turn(thread_id, payload.message)
    except Exception as exc:  # noqa: BLE001
        LOGGER.error(
            "Error processing message", extra={"thread_id": thread_id}, exc_info=exc
        )
        return _internal_error()
    return _turn_response(result)


@app.post("/api/threads/{thread_id}/refund-authorization")
async def authorize_refund(
    thread_id: str,
    x_gemini_api_key: str | None = Header(default=None, alias="X-Gemini-Api-Key"),
) -> JSONResponse:
    try:
        service = _support_service(x_gemini_api_key)
        result = await service.authorize_refund(thread_id)
    except NothingToResume as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except Exception as exc:  # noqa: BLE001
        LOGGER.error(
            "Error authorizing refund", extra={"thread_id": thread_id}, exc_info=exc
        )
        return _internal_error()
    return _turn_response(result)


@app.post("/api/threads/{thread_id}/resume")
async def resume_thread(
    thread_id: str,
    x_gemini_api_key: str | None = Header(default=None, alias="X-Gemini-Api-Key"),
) -> JSONResponse:
    try:
        service = _support_service(x_gemini_api_key)
        result = await service.resume(thread_id)
    except NothingToResume as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except Exception as exc:  # noqa: BLE001
        LOGGER.error(
            "Error resuming thread", extra={"thread_id": thread_id}, exc_info=exc
        )
        return _internal_error()
    return _turn_response(result)


@app.get("/api/threads/{thread_id}")
async def get_thread(thread_id: str) -> JSONResponse:
    state = conversation_store.get(thread_id)
    snapshot = ThreadSnapshot(
        thread_id=thread_id,
        status=state.status,
        awaiting_at=state.awaiting_at,
        refund_authorized=state.refund_authorized,
        messages=[
            ThreadMessage(role=message.role, content=message.content)
            for message in state.messages
        ],
    )
    return JSONResponse(content=snapshot.model_dump(mode="json", by_alias=True))


def _support_service(runtime_gemini_api_key: str | None) -> SupportService:
    config = with_runtime_gemini_key(load_config(), runtime_gemini_api_key)
    cached = _services_by_config.get(config)
    if cached is not None:
        return cached
    service = SupportService(config, conversation_store)
    _services_by_config[config] = service
    return service


def _turn_response(result: TurnResult) -> JSONResponse:
    if result.status == TurnStatus.SUSPENDED and result.awaiting_at is not None:
        pending = AwaitingAuthorizationResponse(
            thread_id=result.thread_id, awaiting_at=result.awaiting_at
        )
        return JSONResponse(
            content=pending.model_dump(mode="json", by_alias=True), status_code=202
        )
    if result.status != TurnStatus.DONE:
        return _internal_error()
    response = ChatResponse(message=result.reply or "", thread_id=result.thread_id)
    return JSONResponse(content=response.model_dump(mode="json", by_alias=True))


def _internal_error() -> JSONResponse:
    return JSONResponse(content={"error": "Internal server error."}, status_code=500)
