# tests for the command-line front end: exit codes and written files

import json

import pytest

from timetable_alloc.cli import main


def _problem(classes, rooms):
    return {
        "scope": {"academic_year": "2025-2026", "term": "1"},
        "classes": classes,
        "rooms": rooms,
        "timeslots": [
            {"id": "MON-1", "day_of_week": 1, "start": "08:00", "end": "10:00"},
            {"id": "TUE-1", "day_of_week": 2, "start": "08:00", "end": "10:00"},
        ],
    }


def _class(cid, instructor, lab=False):
    return {"id": cid, "course_id": cid, "course_code": cid, "instructor_id": instructor,
            "academic_year": "2025-2026", "term": "1", "credits": 2, "requires_lab": lab}


def _run(argv):
    with pytest.raises(SystemExit) as exc:
        main(argv)
    return exc.value.code


def test_full_schedule_exits_zero_and_stores(tmp_path, capsys):
    cfg = tmp_path / "p.json"
    cfg.write_text(json.dumps(_problem([_class("C1", "I1"), _class("C2", "I1")],
                                       [{"id": "R1"}])))
    store, out = tmp_path / "sessions.json", tmp_path / "report.json"

    code = _run(["--config", str(cfg), "--store", str(store), "--out", str(out), "--seed", "4"])
    assert code == 0
    assert len(json.loads(store.read_text())["sessions"]) == 2
    report = json.loads(out.read_text())
    assert report["source"] == "greedy"
    assert "2 session(s) stored" in capsys.readouterr().out


def test_partial_schedule_exits_two(tmp_path, capsys):
    cfg = tmp_path / "p.json"
    cfg.write_text(json.dumps(_problem([_class("C1", "I1", lab=True)], [{"id": "R1"}])))
    assert _run(["--config", str(cfg)]) == 2
    assert "unscheduled" in capsys.readouterr().out


def test_empty_rooms_exits_one(tmp_path, capsys):
    cfg = tmp_path / "p.json"
    cfg.write_text(json.dumps(_problem([_class("C1", "I1")], [])))
    assert _run(["--config", str(cfg)]) == 1
    assert "precheck" in capsys.readouterr().err


def test_missing_file_exits_one(tmp_path):
    assert _run(["--config", str(tmp_path / "nope.json")]) == 1


def test_cpsat_oracle_from_command_line(tmp_path):
    cfg = tmp_path / "p.json"
    cfg.write_text(json.dumps(_problem([_class("C1", "I1"), _class("C2", "I2")],
                                       [{"id": "R1"}])))
    out = tmp_path / "report.json"
    code = _run(["--config", str(cfg), "--oracle", "cpsat", "--timeout", "10", "--out", str(out)])
    assert code == 0
    assert json.loads(out.read_text())["source"] == "oracle"


def test_http_oracle_without_url_falls_back_to_greedy(tmp_path):
    cfg = tmp_path / "p.json"
    cfg.write_text(json.dumps(_problem([_class("C1", "I1")], [{"id": "R1"}])))
    out = tmp_path / "report.json"
    assert _run(["--config", str(cfg), "--oracle", "http", "--out", str(out)]) == 0
    report = json.loads(out.read_text())
    assert report["source"] == "greedy"
    assert report["oracle_failure"] == "unavailable"


def test_chat_oracle_without_key_still_stores_schedule(tmp_path, monkeypatch):
    monkeypatch.delenv("ORACLE_API_KEY", raising=False)
    cfg = tmp_path / "p.json"
    cfg.write_text(json.dumps(_problem([_class("C1", "I1"), _class("C2", "I2")],
                                       [{"id": "R1"}])))
    store = tmp_path / "sessions.json"
    code = _run(["--config", str(cfg), "--store", str(store), "--oracle", "chat",
                 "--oracle-url", "http://llm.test/v1/chat/completions"])
    assert code in (0, 2)
    assert len(json.loads(store.read_text())["sessions"]) == 2
