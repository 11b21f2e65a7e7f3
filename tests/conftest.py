import json
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from analyzer.core.state import Config
from app.main import create_app
from app.state import build_context


TRANSCRIPT_01 = """\
[00:00:02] SISTEMA: Llamada conectada
[00:00:05] AGENTE: Buenos días, ¿en qué puedo ayudarle?
[00:00:12] CLIENTE: Desde ayer no tengo internet, el router parpadea.
[00:01:10] AGENTE: Veo una caída en su zona, reinicie el router.
[00:02:41] SISTEMA: Llamada finalizada
"""

TRANSCRIPT_02 = """\
[00:00:01] SISTEMA: Llamada conectada
[00:00:04] AGENTE: Área de facturación, buenas tardes.
[00:00:09] CLIENTE: En mi factura aparece un cargo que no reconozco.
[00:01:30] AGENTE: Aplicaremos un ajuste en su próxima factura.
"""


class FakeLLM:
    """Stands in for LLMClient. ``reply(prompt, operation)`` returns the completion text or raises."""

    def __init__(self, reply=None, usage=(100, 20)):
        self.reply = reply or default_reply
        self.usage = usage
        self.calls = []

    def chat(self, *, messages, max_output_tokens=1024, operation="chat"):
        prompt = messages[-1]["content"]
        self.calls.append({"operation": operation, "prompt": prompt, "max_output_tokens": max_output_tokens})
        content = self.reply(prompt, operation)
        return {
            "choices": [{"message": {"role": "assistant", "content": content}}],
            "usage": {"prompt_tokens": self.usage[0], "completion_tokens": self.usage[1]},
        }

    def count(self, operation):
        return sum(1 for c in self.calls if c["operation"] == operation)


def default_reply(prompt, operation):
    if operation == "classify":
        category = "billing_issues" if "factura" in prompt else "technical_issues"
        return "```json\n" + json.dumps({"category": category, "confidence": 0.9, "reasoning": "fits"}) + "\n```"
    if operation == "extract_topics":
        if "factura" in prompt:
            body = {"category": "billing_issues", "confidence": 0.8, "topics": ["Unknown charge", "Billing adjustment"]}
        else:
            body = {"category": "technical_issues", "confidence": 0.8, "topics": ["Internet outage", "Router reset"]}
        return json.dumps(body)
    if operation == "summarize":
        return "Customer reported a problem and the agent resolved it."
    raise AssertionError(f"unexpected operation {operation}")


@pytest.fixture
def corpus_dir(tmp_path: Path) -> Path:
    d = tmp_path / "sample"
    d.mkdir()
    (d / "sample_01.txt").write_text(TRANSCRIPT_01, encoding="utf-8")
    (d / "sample_02.txt").write_text(TRANSCRIPT_02, encoding="utf-8")
    return d


@pytest.fixture
def make_config(corpus_dir):
    def _make(**overrides) -> Config:
        values = dict(
            profile="test",
            provider="openai",
            model="gpt-5-mini",
            api_key="test-key",
            cost_limit_usd=5.0,
            transcripts_dir=corpus_dir,
            batch_size=5,
            batch_delay_s=0.0,
        )
        values.update(overrides)
        return Config(**values)
    return _make


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def make_client(make_config, fake_llm):
    def _make(llm=None, **overrides):
        ctx = build_context(make_config(**overrides), llm=llm or fake_llm)
        ctx.store.load()
        return TestClient(create_app(ctx)), ctx
    return _make


@pytest.fixture
def client(make_client):
    c, _ = make_client()
    return c
