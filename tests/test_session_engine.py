import asyncio
import json

import pytest

from dal.session_state_dal import StoreUnavailableError
from models.session_models import Message, SessionState
from services.session.engine import (
    ADD_TASK_HINT,
    COMPLETE_TASK_HINT,
    DELETE_TASK_HINT,
    EMPTY_COMPLETION_REPLY,
    GATEWAY_FAILURE_REPLY,
    EngineSettings,
    SessionEngine,
    decode_state,
    encode_state,
)
from tests.fakes import BrokenStore, FakeGateway, YieldingStore


def _stored(store, key, run):
    blob = run(store.get(key))
    return SessionState.from_dict(json.loads(blob))


def test_first_turn_creates_state(engine, store, run):
    reply = run(engine.handle_turn("s1", "add task: Buy milk"))
    assert reply == '✅ Task added: "Buy milk"'

    state = _stored(store, "s1", run)
    assert [t.title for t in state.tasks] == ["Buy milk"]
    assert state.history == [
        Message("user", "add task: Buy milk"),
        Message("assistant", reply),
    ]
    assert state.context == {}


def test_add_then_list(engine, run):
    run(engine.handle_turn("s1", "add task: Buy milk"))
    reply = run(engine.handle_turn("s1", "what tasks do I have?"))
    assert "Active:\n1. Buy milk" in reply


def test_add_without_title_prompts(engine, store, run):
    assert run(engine.handle_turn("s1", "create task")) == ADD_TASK_HINT
    assert _stored(store, "s1", run).tasks == []


def test_blank_title_prompts_without_adding(engine, store, run):
    assert run(engine.handle_turn("s1", "add task:   ")) == ADD_TASK_HINT
    assert _stored(store, "s1", run).tasks == []


def test_missing_ordinal_prompts(engine, run):
    assert run(engine.handle_turn("s1", "complete task")) == COMPLETE_TASK_HINT
    assert run(engine.handle_turn("s1", "delete task")) == DELETE_TASK_HINT


def test_out_of_range_reports_active_count(engine, run):
    reply = run(engine.handle_turn("s1", "complete task 1"))
    assert reply == "Task 1 not found. You have 0 active tasks."


def test_huge_ordinal_reports_not_found(engine, run):
    run(engine.handle_turn("s1", "add task: A"))
    reply = run(engine.handle_turn("s1", "complete task " + "9" * 5000))
    assert reply.startswith("Task ")
    assert reply.endswith(" not found. You have 1 active tasks.")
    assert "Active:\n1. A" in run(engine.handle_turn("s1", "list tasks"))


def test_complete_and_delete_replies(engine, store, run):
    run(engine.handle_turn("s1", "add task: A"))
    run(engine.handle_turn("s1", "add task: B"))
    assert run(engine.handle_turn("s1", "delete task 1")) == '🗑️ Deleted: "A"'
    assert run(engine.handle_turn("s1", "complete task 1")) == '✓ Completed: "B"'

    state = _stored(store, "s1", run)
    assert [(t.title, t.completed) for t in state.tasks] == [("B", True)]


def test_priority_add_over_complete(engine, store, run):
    run(engine.handle_turn("s1", "add task: finish task 2"))
    state = _stored(store, "s1", run)
    assert [t.title for t in state.tasks] == ["finish task 2"]


def test_history_bounded_to_last_ten(engine, store, run):
    for i in range(8):
        run(engine.handle_turn("s1", f"add task: t{i}"))
        assert len(_stored(store, "s1", run).history) <= 10

    history = _stored(store, "s1", run).history
    assert len(history) == 10
    assert history[0] == Message("user", "add task: t3")
    assert history[-1] == Message("assistant", '✅ Task added: "t7"')


def test_task_ids_unique_across_turns(engine, store, run):
    for i in range(20):
        run(engine.handle_turn("s1", f"add task: t{i}"))
    ids = [t.id for t in _stored(store, "s1", run).tasks]
    assert len(ids) == len(set(ids)) == 20


def test_chat_delegates_with_prior_window(engine, gateway, run):
    run(engine.handle_turn("s1", "add task: A"))
    run(engine.handle_turn("s1", "complete task 1"))
    run(engine.handle_turn("s1", "add task: B"))

    reply = run(engine.handle_turn("s1", "How are you?"))
    assert reply == "Sure thing!"

    system_prompt, window, message = gateway.calls[-1]
    assert message == "How are you?"
    assert [m.content for m in window] == [
        "complete task 1",
        '✓ Completed: "A"',
        "add task: B",
        '✅ Task added: "B"',
    ]
    assert "- Active tasks: 1" in system_prompt
    assert "- Completed tasks: 1" in system_prompt


def test_empty_completion_gets_default_reply(store, run):
    engine = SessionEngine(store, FakeGateway(reply=""))
    assert run(engine.handle_turn("s1", "hello")) == EMPTY_COMPLETION_REPLY


def test_gateway_failure_is_recovered_and_persisted(store, failing_gateway, run):
    engine = SessionEngine(store, failing_gateway)
    reply = run(engine.handle_turn("s1", "tell me a joke"))
    assert reply == GATEWAY_FAILURE_REPLY

    state = _stored(store, "s1", run)
    assert state.history[-1] == Message("assistant", GATEWAY_FAILURE_REPLY)
    assert state.history[-2] == Message("user", "tell me a joke")


def test_load_failure_is_fatal(gateway, run):
    engine = SessionEngine(BrokenStore(fail_get=True), gateway)
    with pytest.raises(StoreUnavailableError):
        run(engine.handle_turn("s1", "hello"))
    assert gateway.calls == []


def test_save_failure_fails_turn(gateway, run):
    store = BrokenStore(fail_put=True)
    engine = SessionEngine(store, gateway)
    with pytest.raises(StoreUnavailableError):
        run(engine.handle_turn("s1", "add task: x"))
    assert run(store.get("s1")) is None


def test_lock_released_after_failure(gateway, run):
    store = BrokenStore(fail_put=True)
    engine = SessionEngine(store, gateway)

    async def scenario():
        with pytest.raises(StoreUnavailableError):
            await engine.handle_turn("s1", "add task: x")
        store.fail_put = False
        return await engine.handle_turn("s1", "add task: y")

    assert run(scenario()) == '✅ Task added: "y"'


def test_corrupt_blob_is_store_failure(store, gateway, run):
    run(store.put("s1", "{not json"))
    engine = SessionEngine(store, gateway)
    with pytest.raises(StoreUnavailableError):
        run(engine.handle_turn("s1", "hello"))


def test_concurrent_turns_same_key_do_not_lose_updates(gateway, run):
    store = YieldingStore()
    engine = SessionEngine(store, gateway)

    async def scenario():
        await asyncio.gather(*(engine.handle_turn("s1", f"add task: t{i}") for i in range(5)))

    run(scenario())
    state = _stored(store, "s1", run)
    assert [t.title for t in state.tasks] == [f"t{i}" for i in range(5)]
    assert len(state.history) == 10


def test_distinct_keys_are_independent(gateway, run):
    store = YieldingStore()
    engine = SessionEngine(store, gateway)

    async def scenario():
        await asyncio.gather(
            engine.handle_turn("a", "add task: for a"),
            engine.handle_turn("b", "add task: for b"),
        )

    run(scenario())
    assert [t.title for t in _stored(store, "a", run).tasks] == ["for a"]
    assert [t.title for t in _stored(store, "b", run).tasks] == ["for b"]


def test_custom_settings_change_bounds(store, gateway, run):
    engine = SessionEngine(store, gateway, settings=EngineSettings(history_limit=4, context_window=2))
    for i in range(3):
        run(engine.handle_turn("s1", f"add task: t{i}"))
    run(engine.handle_turn("s1", "hi"))
    assert len(gateway.calls[-1][1]) == 2
    assert len(_stored(store, "s1", run).history) == 4


def test_apply_turn_works_on_plain_state(engine, run):
    state, reply = run(engine.apply_turn(SessionState(), "add task: offline"))
    assert reply == '✅ Task added: "offline"'
    assert [t.title for t in state.tasks] == ["offline"]
    assert len(state.history) == 2


def test_state_codec_preserves_context_and_tasks(engine, run):
    state, _ = run(engine.apply_turn(SessionState(context={"name": "Ada", "prefs": [1, 2]}), "add task: z"))
    restored = decode_state(encode_state(state))
    assert restored == state


def test_decode_rejects_unknown_role():
    blob = json.dumps({"history": [{"role": "robot", "content": "x"}], "tasks": [], "context": {}})
    with pytest.raises(StoreUnavailableError):
        decode_state(blob)


def test_decode_rejects_non_object():
    with pytest.raises(StoreUnavailableError):
        decode_state("[]")


def test_engine_requires_dependencies(store, gateway):
    with pytest.raises(ValueError):
        SessionEngine(None, gateway)
    with pytest.raises(ValueError):
        SessionEngine(store, None)
