import io
import json

import pytest

from analyzer.errors import LLMError
from analyzer.llm import client as client_mod
from analyzer.llm.client import LLMClient, content_of


class _Response(io.BytesIO):
    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


@pytest.fixture
def sent(monkeypatch):
    """Replace urlopen with a canned body; yields the captured requests."""
    captured = {"requests": [], "body": b"{}"}

    def fake_urlopen(req, timeout=None):
        captured["requests"].append(req)
        return _Response(captured["body"])

    monkeypatch.setattr(client_mod.request, "urlopen", fake_urlopen)
    return captured


def _client(provider="openai"):
    return LLMClient(provider=provider, model="gpt-5-mini", api_key="k", api_base="http://llm.local/")


def test_chat_posts_completion_request(sent):
    sent["body"] = json.dumps({"choices": [{"message": {"content": "hi"}}], "usage": {}}).encode()
    resp = _client().chat(messages=[{"role": "user", "content": "x"}], max_output_tokens=150)
    assert content_of(resp) == "hi"

    req = sent["requests"][0]
    assert req.full_url == "http://llm.local/v1/chat/completions"
    payload = json.loads(req.data)
    assert payload["max_completion_tokens"] == 150
    assert "max_tokens" not in payload


def test_compatible_gateways_get_max_tokens(sent):
    sent["body"] = json.dumps({"choices": [{"message": {"content": "hi"}}]}).encode()
    _client(provider="deepseek").chat(messages=[], max_output_tokens=100)
    assert json.loads(sent["requests"][0].data)["max_tokens"] == 100


@pytest.mark.parametrize("body", [b"not json", b"[1, 2]", b'"text"', b'{"choices": []}'])
def test_unusable_bodies_raise_llm_error(sent, body):
    sent["body"] = body
    with pytest.raises(LLMError) as exc:
        _client().chat(messages=[], operation="summarize")
    assert exc.value.operation == "summarize"


def test_missing_key_raises_before_any_request(sent, monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(LLMError):
        LLMClient(provider="openai", model="gpt-5-mini").chat(messages=[])
    assert sent["requests"] == []
