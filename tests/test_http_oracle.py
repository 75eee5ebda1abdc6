# tests for the httpx-backed oracles, using httpx.MockTransport so nothing
# leaves the process

import json
import time

import httpx
import pytest

from timetable_alloc.engine.api import build_oracle
from timetable_alloc.engine.http_oracle import ChatCompletionOracle, HttpOracle, build_prompt
from timetable_alloc.engine.oracle import build_payload, try_oracle
from timetable_alloc.engine.result import OracleFailure
from timetable_alloc.models import ClassOffering, OracleParams, Problem, Room, TimeSlot

YEAR, TERM = "2025-2026", "1"


def _problem():
    return Problem(
        academic_year=YEAR, term=TERM,
        classes=[ClassOffering("C1", "BIO1", "I1", YEAR, TERM, 1.5, course_code="BIO1")],
        rooms=[Room("R1", 40)],
        timeslots=[TimeSlot("S1", 3, "10:00", "11:30")],
    )


def _client(handler):
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_http_oracle_posts_payload_and_result_is_validated():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=[{"classId": "C1", "roomId": "R1", "slotId": "S1"}])

    oracle  = HttpOracle("http://oracle.test/generate", client=_client(handler))
    outcome = try_oracle(oracle, _problem(), timeout=5)
    assert outcome.ok
    assert outcome.sessions[0].slot_id == "S1"
    assert seen["body"]["classes"][0]["id"] == "C1"


def test_http_error_status_is_transport_failure():
    oracle  = HttpOracle("http://oracle.test/generate",
                         client=_client(lambda request: httpx.Response(503)))
    outcome = try_oracle(oracle, _problem(), timeout=5)
    assert outcome.failure == OracleFailure.TRANSPORT


def test_http_timeout_is_tagged_timeout():
    def handler(request):
        raise httpx.ReadTimeout("read timed out", request=request)

    oracle  = HttpOracle("http://oracle.test/generate", client=_client(handler))
    outcome = try_oracle(oracle, _problem(), timeout=5)
    assert outcome.failure == OracleFailure.TIMEOUT


def test_http_oracle_enforces_total_deadline_on_slow_body():
    def dripping():
        for _ in range(100):
            time.sleep(0.05)
            yield b" "

    oracle = HttpOracle("http://oracle.test/generate",
                        client=_client(lambda request: httpx.Response(200, content=dripping())))
    t0 = time.perf_counter()
    with pytest.raises(TimeoutError):
        oracle.propose(build_payload(_problem()), timeout=0.3)
    assert time.perf_counter() - t0 < 3



def test_http_non_json_body_is_parse_failure():
    oracle  = HttpOracle("http://oracle.test/generate",
                         client=_client(lambda request: httpx.Response(200, text="<html>")))
    assert try_oracle(oracle, _problem(), timeout=5).failure == OracleFailure.PARSE


def test_chat_oracle_sends_prompt_and_reads_message_content():
    seen = {}

    def handler(request):
        seen["auth"] = request.headers.get("authorization")
        seen["body"] = json.loads(request.content)
        content = json.dumps({"sessions": [{"classId": "C1", "roomId": "R1", "slotId": "S1"}]})
        return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})

    oracle = ChatCompletionOracle("http://llm.test/v1/chat/completions", "some-model",
                                  "secret", client=_client(handler))
    outcome = try_oracle(oracle, _problem(), timeout=5)
    assert outcome.ok
    assert seen["auth"] == "Bearer secret"
    assert seen["body"]["model"] == "some-model"
    assert seen["body"]["temperature"] == pytest.approx(0.1)
    assert "BIO1" in seen["body"]["messages"][0]["content"]


def test_chat_oracle_malformed_envelope_is_parse_failure():
    oracle = ChatCompletionOracle("http://llm.test/v1/chat/completions", "m", "k",
                                  client=_client(lambda request: httpx.Response(200, json={"choices": []})))
    assert try_oracle(oracle, _problem(), timeout=5).failure == OracleFailure.PARSE


def test_prompt_numbers_every_constraint():
    payload = build_payload(_problem())
    prompt  = build_prompt(payload)
    for i in range(1, len(payload["constraints"]) + 1):
        assert f"\n{i}. " in prompt
    assert "JSON" in prompt


def test_build_oracle_kinds(monkeypatch):
    assert build_oracle(OracleParams(kind="none")) is None
    assert isinstance(build_oracle(OracleParams(kind="http", url="http://x")), HttpOracle)

    monkeypatch.setenv("MY_KEY", "k")
    chat = build_oracle(OracleParams(kind="chat", url="http://x", model="m", api_key_env="MY_KEY"))
    assert isinstance(chat, ChatCompletionOracle)

    with pytest.raises(ValueError):
        build_oracle(OracleParams(kind="magic"))


def test_misconfigured_oracle_builds_as_none(monkeypatch):
    monkeypatch.delenv("MY_KEY", raising=False)
    assert build_oracle(OracleParams(kind="chat", url="http://x", api_key_env="MY_KEY")) is None
    assert build_oracle(OracleParams(kind="http")) is None
