import json
from pathlib import Path

from switchboard.models import Message, Role, RouterState, TurnStatus
from switchboard.store import ConversationStore


def test_store_creates_empty_thread_on_first_read() -> None:
    store = ConversationStore()

    state = store.get("new-thread")

    assert state.messages == []
    assert state.refund_authorized is False
    assert state.awaiting_at is None
    assert state.status is None


def test_store_keeps_append_order_and_returns_snapshots() -> None:
    store = ConversationStore()
    store.append("t1", [Message.user("one"), Message.assistant("two")])

    snapshot = store.get("t1")
    snapshot.messages.append(Message.user("not persisted"))
    store.append("t1", [Message.user("three")])

    assert [message.content for message in store.get("t1").messages] == [
        "one",
        "two",
        "three",
    ]


def test_store_commit_turn_updates_status_and_awaiting() -> None:
    store = ConversationStore()

    store.commit_turn(
        "t1",
        [Message.user("refund please")],
        TurnStatus.SUSPENDED,
        RouterState.REFUND,
    )
    store.commit_turn("t1", [], TurnStatus.DONE, None)

    state = store.get("t1")
    assert state.status == TurnStatus.DONE
    assert state.awaiting_at is None
    assert len(state.messages) == 1


def test_store_threads_are_isolated() -> None:
    store = ConversationStore()
    store.append("a", [Message.user("for a")])
    store.authorize_refund("b")

    assert store.get("b").messages == []
    assert store.get("a").refund_authorized is False
    assert store.lock("a") is store.lock("a")
    assert store.lock("a") is not store.lock("b")


def test_store_persists_and_reloads_threads(tmp_path: Path) -> None:
    path = tmp_path / "state" / "threads.json"
    store = ConversationStore(str(path))
    store.append("t1", [Message.user("¿Tienen cobertura en Medellín?")])
    store.commit_turn(
        "t1",
        [Message.assistant("Sí")],
        TurnStatus.SUSPENDED,
        RouterState.REFUND,
    )
    store.authorize_refund("t1")

    reloaded = ConversationStore(str(path)).get("t1")

    assert [message.content for message in reloaded.messages] == [
        "¿Tienen cobertura en Medellín?",
        "Sí",
    ]
    assert reloaded.awaiting_at == RouterState.REFUND
    assert reloaded.status == TurnStatus.SUSPENDED
    assert reloaded.refund_authorized is True


def test_store_skips_malformed_persisted_rows(tmp_path: Path) -> None:
    path = tmp_path / "threads.json"
    path.write_text(
        json.dumps(
            {
                "good": {
                    "messages": [
                        {"role": "user", "content": "hi"},
                        {"role": "robot", "content": "beep"},
                        {"role": "assistant"},
                    ],
                    "awaiting_at": "NOWHERE",
                    "status": "done",
                },
                "bad": {"messages": "not-a-list"},
                "worse": ["nope"],
            }
        ),
        encoding="utf-8",
    )

    store = ConversationStore(str(path))
    state = store.get("good")
    store.set_status("good", TurnStatus.DONE)

    assert set(json.loads(path.read_text(encoding="utf-8"))) == {"good"}
    assert state.messages == [Message(role=Role.USER, content="hi")]
    assert state.awaiting_at is None
    assert state.status == TurnStatus.DONE


def test_store_starts_empty_when_persisted_file_is_corrupt(tmp_path: Path) -> None:
    path = tmp_path / "threads.json"
    path.write_text("{not json", encoding="utf-8")

    store = ConversationStore(str(path))

    assert store.get("t1").messages == []
    store.append("t1", [Message.user("hi")])
    assert json.loads(path.read_text(encoding="utf-8"))["t1"]["messages"] == [
        {"role": "user", "content": "hi"}
    ]
