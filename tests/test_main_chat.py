import pytest
from fastapi.testclient import TestClient

import main
from switchboard.models import Message, RouterState, TurnResult, TurnStatus
from switchboard.service import NothingToResume


class _FakeService:
    outcomes: dict[str, TurnResult] = {}
    seen_threads: list[str] = []

    def __init__(self, config, store) -> None:
        self._config = config
        self._store = store

    async def run_turn(self, thread_id: str, message: str) -> TurnResult:
        _ = message
        self.seen_threads.append(thread_id)
        return self.outcomes.get(
            thread_id,
            TurnResult(thread_id=thread_id, status=TurnStatus.DONE, reply="Hello!"),
        )

    async def resume(self, thread_id: str) -> TurnResult:
        raise NothingToResume(f"Thread {thread_id!r} is not awaiting input")

    async def authorize_refund(self, thread_id: str) -> TurnResult:
        return TurnResult(
            thread_id=thread_id, status=TurnStatus.DONE, reply="Refund processed!"
        )


class _ExplodingService(_FakeService):
    async def run_turn(self, thread_id: str, message: str) -> TurnResult:
        raise RuntimeError("boom")


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch) -> TestClient:
    _FakeService.outcomes = {}
    _FakeService.seen_threads = []
    monkeypatch.setattr(main, "SupportService", _FakeService)
    return TestClient(main.app)


def test_chat_returns_reply_and_thread_id(client: TestClient) -> None:
    response = client.post("/api/chat", json={"message": "Hi", "sessionId": " s-1 "})

    assert response.status_code == 200
    assert response.json() == {"message": "Hello!", "threadId": "s-1"}


def test_chat_generates_thread_id_when_session_missing(client: TestClient) -> None:
    response = client.post("/api/chat", json={"message": "Hi"})

    assert response.status_code == 200
    assert response.json()["threadId"] == _FakeService.seen_threads[0]
    assert response.json()["threadId"]


def test_chat_rejects_empty_message(client: TestClient) -> None:
    response = client.post("/api/chat", json={"message": ""})

    assert response.status_code == 422


def test_chat_reports_pending_refund_authorization(client: TestClient) -> None:
    _FakeService.outcomes["s-2"] = TurnResult(
        thread_id="s-2",
        status=TurnStatus.SUSPENDED,
        reply=None,
        awaiting_at=RouterState.REFUND,
    )

    response = client.post("/api/chat", json={"message": "refund", "sessionId": "s-2"})

    assert response.status_code == 202
    assert response.json() == {
        "threadId": "s-2",
        "status": "awaiting_authorization",
        "awaitingAt": "REFUND",
    }


def test_chat_failed_turn_is_internal_error(client: TestClient) -> None:
    _FakeService.outcomes["s-3"] = TurnResult(
        thread_id="s-3", status=TurnStatus.FAILED, reply=None, error="down"
    )

    response = client.post("/api/chat", json={"message": "Hi", "sessionId": "s-3"})

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error."}


def test_chat_unexpected_error_is_internal_error(
    client: TestClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(main, "SupportService", _ExplodingService)

    response = client.post("/api/chat", json={"message": "Hi", "sessionId": "s-4"})

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error."}


def test_resume_without_pending_authorization_conflicts(client: TestClient) -> None:
    response = client.post("/api/threads/s-5/resume")

    assert response.status_code == 409


def test_refund_authorization_returns_processed_reply(client: TestClient) -> None:
    response = client.post("/api/threads/s-6/refund-authorization")

    assert response.status_code == 200
    assert response.json() == {"message": "Refund processed!", "threadId": "s-6"}


def test_thread_snapshot_lists_messages(client: TestClient) -> None:
    main.conversation_store.commit_turn(
        "s-7",
        [Message.user("refund"), Message.assistant("On it.")],
        TurnStatus.SUSPENDED,
        RouterState.REFUND,
    )

    response = client.get("/api/threads/s-7")

    assert response.status_code == 200
    assert response.json() == {
        "threadId": "s-7",
        "status": "suspended",
        "awaitingAt": "REFUND",
        "refundAuthorized": False,
        "messages": [
            {"role": "user", "content": "refund"},
            {"role": "assistant", "content": "On it."},
        ],
    }


def test_health(client: TestClient) -> None:
    assert client.get("/health").json() == {"ok": True}


def test_thread_routes_report_unexpected_errors_as_json(
    client: TestClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    class _BrokenThreadService(_FakeService):
        async def resume(self, thread_id: str) -> TurnResult:
            raise RuntimeError("boom")

        async def authorize_refund(self, thread_id: str) -> TurnResult:
            raise RuntimeError("boom")

    monkeypatch.setattr(main, "SupportService", _BrokenThreadService)

    for path in ("/api/threads/s-8/resume", "/api/threads/s-8/refund-authorization"):
        response = client.post(path)
        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error."}


def test_service_is_built_once_per_configuration(client: TestClient) -> None:
    first = main._support_service(None)

    assert main._support_service(None) is first
    assert main._support_service("runtime-key") is not first
    assert main._support_service("runtime-key") is main._support_service("runtime-key")
