from __future__ import annotations

import json
import os
import socket
from dataclasses import dataclass
from typing import Optional
from urllib import request, error

from analyzer.errors import LLMError


@dataclass
class LLMClient:
    """
    Minimal abstraction for OpenAI-compatible chat completions.

    One attempt per call: transport failures surface as LLMError and the
    caller decides what to do with them.
    """

    provider: str  # "openai" or any compatible gateway ("deepseek", ...)
    model: str
    api_key: Optional[str] = None
    api_base: str = "https://api.openai.com"
    timeout: float = 60.0

    def _get_key(self) -> Optional[str]:
        if self.api_key:
            return self.api_key
        return os.getenv("OPENAI_API_KEY")

    def _token_param(self) -> str:
        # OpenAI's newer models reject max_tokens; compatible gateways still expect it
        return "max_completion_tokens" if self.provider == "openai" else "max_tokens"

    # --- Public API ---------------------------------------------------------
    def chat(self, *, messages: list[dict], max_output_tokens: int = 1024, operation: str = "chat") -> dict:
        """
        Send one chat-completion request and return the parsed JSON response.

        - messages: list of {role, content}
        - max_output_tokens: completion bound passed to the provider
        - operation: label used in error messages
        """
        key = self._get_key()
        if not key:
            raise LLMError("Missing OPENAI_API_KEY", operation=operation)

        url = self.api_base.rstrip("/") + "/v1/chat/completions"
        headers = {
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
        }
        payload: dict = {
            "model": self.model,
            "messages": messages,
            self._token_param(): max(1, int(max_output_tokens or 1024)),
            "stream": False,
        }

        data = json.dumps(payload).encode("utf-8")
        req = request.Request(url, data=data, headers=headers, method="POST")

        try:
            with request.urlopen(req, timeout=self.timeout) as resp:
                raw = resp.read().decode("utf-8")
        except error.HTTPError as e:  # pragma: no cover - network path
            try:
                body = e.read().decode("utf-8")
            except Exception:
                body = str(e)
            raise LLMError(f"{self.provider} HTTP {e.code}: {body}", operation=operation) from e
        except error.URLError as e:  # pragma: no cover - network path
            raise LLMError(f"{self.provider} network error: {e}", operation=operation) from e
        except socket.timeout as e:  # pragma: no cover - network path
            raise LLMError(f"{self.provider} timeout: {e}", operation=operation) from e

        try:
            obj = json.loads(raw)
        except json.JSONDecodeError as e:
            raise LLMError(f"{self.provider} returned non-JSON body", operation=operation) from e
        if not isinstance(obj, dict):
            raise LLMError(f"{self.provider} returned an unexpected body", operation=operation)
        if not (obj.get("choices") or []):
            raise LLMError(f"{self.provider}: empty choices", operation=operation)
        return obj


def content_of(resp: dict) -> str:
    choices = (resp or {}).get("choices") or []
    if not choices:
        return ""
    return (choices[0].get("message") or {}).get("content") or ""
