import json

import pytest

from src.sitechat.services.reply_interpreter import (
    FALLBACK_FIXED,
    FIXED_FALLBACK_TEXT,
    ReplyInterpreter,
)


def test_structured_reply_is_decoded():
    res = ReplyInterpreter().interpret(json.dumps({"html": "<p>hi</p>", "chat": "hi there"}))
    assert res.artifact_content == "<p>hi</p>"
    assert res.reply_text == "hi there"


@pytest.mark.parametrize("html", [None, "", "   \n", 42])
def test_missing_or_blank_html_yields_no_artifact(html):
    body = {"chat": "just talking"}
    if html is not None:
        body["html"] = html
    res = ReplyInterpreter().interpret(json.dumps(body))
    assert res.artifact_content is None
    assert res.reply_text == "just talking"


@pytest.mark.parametrize(
    "raw",
    ["plain reply", "", "[1, 2]", '"a string"', '{"chat": 5}', "{broken"],
)
def test_unstructured_text_falls_back_to_raw(raw):
    res = ReplyInterpreter().interpret(raw)
    assert res.artifact_content is None
    assert res.reply_text == raw


def test_fixed_fallback_policy_uses_constant_text():
    res = ReplyInterpreter(FALLBACK_FIXED).interpret("plain reply")
    assert res.reply_text == FIXED_FALLBACK_TEXT
    assert res.artifact_content is None


def test_unknown_policy_defaults_to_raw():
    interp = ReplyInterpreter("shout")
    assert interp.fallback_policy == "raw"
    assert interp.interpret("x").reply_text == "x"


def test_code_fenced_json_is_accepted():
    raw = "```json\n" + json.dumps({"html": "<b>x</b>", "chat": "done"}) + "\n```"
    res = ReplyInterpreter().interpret(raw)
    assert res.artifact_content == "<b>x</b>"
    assert res.reply_text == "done"


@pytest.mark.parametrize("policy, text", [("raw", None), (FALLBACK_FIXED, FIXED_FALLBACK_TEXT)])
def test_html_without_chat_keeps_artifact(policy, text):
    raw = json.dumps({"html": "<p>x</p>"})
    res = ReplyInterpreter(policy).interpret(raw)
    assert res.artifact_content == "<p>x</p>"
    assert res.reply_text == (text or raw)
