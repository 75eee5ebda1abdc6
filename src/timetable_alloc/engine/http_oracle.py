"""
Remote generation oracles reached over HTTP with httpx.

HttpOracle      POSTs the problem payload as JSON to a generator service
                and hands the raw response body to the adapter.
ChatCompletionOracle
                Sends the problem as a prompt to an OpenAI-compatible
                /chat/completions endpoint and returns the message content.

Neither class validates anything: the adapter in oracle.py parses and
re-checks every proposal. httpx timeouts, and a response still arriving
when the total timeout runs out, are raised as the builtin TimeoutError
so the adapter can tag them as such.

Reference: httpx — Clients, Timeouts
https://www.python-httpx.org/advanced/clients/
"""

from __future__ import annotations

import json
import time
from typing import Any, Dict, List, Optional

import httpx


class HttpOracle:

    def __init__(
        self,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        client:  Optional[httpx.Client]   = None,
    ) -> None:
        if not url:
            raise ValueError("HttpOracle needs a url")
        self.url     = url
        self.headers = dict(headers or {})
        self._client = client

    def propose(self, payload: Dict[str, Any], timeout: float) -> Any:
        # httpx bounds each connect/read step; the deadline bounds the whole call
        deadline = time.monotonic() + timeout
        body     = self.request_body(payload)
        try:
            if self._client is not None:
                content = self._post(self._client, body, timeout, deadline)
            else:
                with httpx.Client(timeout=timeout) as client:
                    content = self._post(client, body, timeout, deadline)
        except httpx.TimeoutException as e:
            raise TimeoutError(f"{self.url}: {e}") from e
        return self.extract(content)

    def _post(
        self, client: httpx.Client, body: Dict[str, Any], timeout: float, deadline: float
    ) -> bytes:
        chunks: List[bytes] = []
        with client.stream(
            "POST", self.url, json=body, headers=self.headers, timeout=timeout
        ) as response:
            response.raise_for_status()
            for chunk in response.iter_bytes():
                if time.monotonic() > deadline:
                    raise TimeoutError(f"{self.url}: response not complete within {timeout:g}s")
                chunks.append(chunk)
        return b"".join(chunks)

    def request_body(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return payload

    def extract(self, content: bytes) -> Any:
        return content


def build_prompt(payload: Dict[str, Any]) -> str:
    constraints = "\n".join(
        f"{i}. {text}" for i, text in enumerate(payload["constraints"], 1)
    )
    return (
        "You are an expert university scheduler. Generate a valid, "
        "conflict-free weekly timetable.\n\n"
        "DATA:\n"
        f"- Classes: {json.dumps(payload['classes'])}\n"
        f"- Rooms: {json.dumps(payload['rooms'])}\n"
        f"- Slots: {json.dumps(payload['slots'])}\n"
        f"- Instructor availability: {json.dumps(payload['availability'])}\n\n"
        f"CONSTRAINTS:\n{constraints}\n\n"
        "OUTPUT:\n"
        'Return ONLY a JSON object of the form {"sessions": '
        '[{"classId": "...", "roomId": "...", "slotId": "..."}]}. '
        "Leave out any class you cannot place. No other text."
    )


class ChatCompletionOracle(HttpOracle):

    def __init__(
        self,
        url:   str,
        model: str,
        api_key: str,
        *,
        temperature: float                 = 0.1,
        client:      Optional[httpx.Client] = None,
    ) -> None:
        if not api_key:
            raise ValueError("ChatCompletionOracle needs an api key")
        super().__init__(
            url,
            headers={"Authorization": f"Bearer {api_key}"},
            client=client,
        )
        self.model       = model
        self.temperature = temperature

    def request_body(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "model":           self.model,
            "messages":        [{"role": "user", "content": build_prompt(payload)}],
            "temperature":     self.temperature,
            "response_format": {"type": "json_object"},
        }

    def extract(self, content: bytes) -> Any:
        # malformed envelopes become None, which the adapter reports as a parse failure
        try:
            return json.loads(content)["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError):
            return None
