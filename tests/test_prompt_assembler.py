from src.sitechat.domain.chat_models import Message
from src.sitechat.infrastructure.project_store import InMemoryProjectStore
from src.sitechat.services import prompt_assembler as pa


def _store(**kwargs) -> InMemoryProjectStore:
    return InMemoryProjectStore(**kwargs)


def test_combine_system_prompt_joins_and_skips_blank_parts():
    assert pa.combine_system_prompt("fixed", "user") == "fixed\n\nuser"
    assert pa.combine_system_prompt("fixed", "  ") == "fixed"
    assert pa.combine_system_prompt("", "user") == "user"
    assert pa.combine_system_prompt("", "") == ""


def test_empty_history_is_seeded_with_combined_prompt():
    store = _store(fixed_prompt="Always answer in JSON.")
    store.save_user_prompt("Prefer blue.")

    out = pa.assemble(store, "demo", "hello", [])

    assert out.seeded is True
    assert [m.role for m in out.history] == ["system", "user"]
    assert out.history[0].content == "Always answer in JSON.\n\nPrefer blue."
    assert out.history[1].content == "hello"


def test_supplied_user_prompt_overrides_stored_one_when_seeding():
    store = _store(fixed_prompt="F")
    store.save_user_prompt("old")
    out = pa.assemble(store, "demo", "hello", [], user_prompt="new")
    assert out.history[0].content == "F\n\nnew"


def test_existing_history_is_not_reseeded():
    store = _store(fixed_prompt="changed since")
    history = [
        Message(role="system", content="original"),
        Message(role="user", content="one"),
        Message(role="assistant", content="reply"),
    ]
    out = pa.assemble(store, "demo", "two", history)
    assert out.seeded is False
    assert [m.content for m in out.history] == ["original", "one", "reply", "two"]
    # caller's list is not mutated
    assert len(history) == 3


def test_duplicate_of_preceding_message_is_not_appended():
    store = _store()
    history = [Message(role="system", content="s"), Message(role="user", content="hello")]
    out = pa.assemble(store, "demo", "  hello ", history)
    assert out.appended_user is False
    assert len(out.history) == 2


def test_duplicate_check_is_case_sensitive():
    store = _store()
    history = [Message(role="system", content="s"), Message(role="user", content="hello")]
    out = pa.assemble(store, "demo", "Hello", history)
    assert out.appended_user is True
    assert out.history[-1].content == "Hello"


def test_blank_user_message_is_not_appended():
    store = _store()
    out = pa.assemble(store, "demo", "   ", [Message(role="system", content="s")])
    assert out.appended_user is False
    assert len(out.history) == 1


def test_artifact_context_is_sent_but_not_persisted():
    store = _store(template="<template/>")
    store.save_artifact("demo", "<p>latest</p>")
    out = pa.assemble(store, "demo", "tweak it", [Message(role="system", content="s")])

    assert len(out.messages) == len(out.history) + 1
    ctx = out.messages[-1]
    assert ctx.role == "system"
    assert ctx.content.startswith(pa.CURRENT_CONTEXT_LABEL)
    assert "<p>latest</p>" in ctx.content
    assert "<template/>" not in ctx.content
    assert all(m.content != ctx.content for m in out.history)


def test_template_is_used_when_no_artifact_exists():
    store = _store(template="<template/>")
    out = pa.assemble(store, "demo", "start", [])
    ctx = out.messages[-1]
    assert ctx.content.startswith(pa.INITIAL_CONTEXT_LABEL)
    assert "<template/>" in ctx.content


def test_no_context_message_without_artifact_or_template():
    store = _store(fixed_prompt="F")
    out = pa.assemble(store, "demo", "start", [])
    assert [m.role for m in out.messages] == ["system", "user"]


def test_blank_messages_are_dropped_from_transmitted_list():
    store = _store()  # no prompts -> seeded system message is empty
    out = pa.assemble(store, "demo", "hello", [])
    assert out.history[0].content == ""
    assert [m.role for m in out.messages] == ["user"]


def test_message_repeating_assistant_reply_is_still_sent():
    store = _store()
    history = [
        Message(role="system", content="s"),
        Message(role="user", content="say OK"),
        Message(role="assistant", content="OK"),
    ]
    out = pa.assemble(store, "demo", "OK", history)
    assert out.appended_user is True
    assert out.history[-1] == Message(role="user", content="OK")
    assert out.messages[-1] == Message(role="user", content="OK")


def test_message_repeating_system_prompt_is_still_sent():
    store = _store(fixed_prompt="hello")
    out = pa.assemble(store, "demo", "hello", [])
    assert out.appended_user is True
    assert [m.role for m in out.history] == ["system", "user"]
