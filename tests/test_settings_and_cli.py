# tests/test_settings_and_cli.py

import json
from datetime import datetime, timezone

from cli.run_practice_session import load_history, today_progress
from practice_ai_core.settings import load_settings


def test_load_settings_reads_env(monkeypatch, tmp_path):
    monkeypatch.setenv("QUESTION_BANK_DIR", str(tmp_path / "bank"))
    monkeypatch.setenv("QUESTION_BANK_PROBABILITY", "0.25")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    settings = load_settings(tmp_path / ".env")
    assert settings.question_bank_dir == str(tmp_path / "bank")
    assert settings.question_bank_probability == 0.25
    assert settings.log_level == "DEBUG"


def test_bank_probability_clamped_or_defaulted(monkeypatch, tmp_path):
    monkeypatch.setenv("QUESTION_BANK_PROBABILITY", "3")
    assert load_settings(tmp_path / ".env").question_bank_probability == 1.0
    monkeypatch.setenv("QUESTION_BANK_PROBABILITY", "abc")
    assert load_settings(tmp_path / ".env").question_bank_probability == 0.7


def test_load_history_handles_missing_and_corrupt(tmp_path):
    assert load_history(str(tmp_path / "none.json")) == []
    broken = tmp_path / "broken.json"
    broken.write_text("{oops", encoding="utf-8")
    assert load_history(str(broken)) == []
    good = tmp_path / "good.json"
    good.write_text(json.dumps([{"topic": "Division"}]), encoding="utf-8")
    assert load_history(str(good)) == [{"topic": "Division"}]


def test_today_progress_counts_only_today():
    today = datetime.now(timezone.utc).date().isoformat()
    answered = [
        {"topic": "Division", "isCorrect": True, "date": today},
        {"topic": "Division", "isCorrect": False, "date": today},
        {"topic": "Division", "isCorrect": True, "date": "2000-01-01"},
    ]
    assert today_progress(answered) == {"Division": {"correct": 1, "incorrect": 1}}
