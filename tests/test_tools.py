from unittest.mock import AsyncMock

import generate_key
import process_local_entries
from guttrack import ai_engine
from guttrack.config import Config

from .conftest import run


def test_generated_keys_are_unique_and_url_safe():
    first, second = generate_key.generate_api_key(), generate_key.generate_api_key()
    assert first != second
    assert len(first) >= 40
    assert all(c.isalnum() or c in "-_" for c in first)


def test_batch_parse_missing_file(tmp_path):
    assert run(process_local_entries.main(str(tmp_path / "nope.txt"))) == 1


def test_batch_parse_reports_failures(tmp_path, monkeypatch, capsys):
    entries = tmp_path / "entries.txt"
    entries.write_text("# comment\nate toast\n\nhad soup\n", encoding="utf-8")
    monkeypatch.setattr(Config, "OPENROUTER_API_KEY", "sk-or-test")
    extract = AsyncMock(side_effect=[
        {"entries": [{"type": "breakfast", "description": "Toast"}]},
        ai_engine.AIResponseError("not json"),
    ])
    monkeypatch.setattr(ai_engine, "extract_multi_category", extract)

    assert run(process_local_entries.main(str(entries))) == 1

    out = capsys.readouterr().out
    assert "Found 2 descriptions" in out
    assert "breakfast" in out
    assert "Failed" in out
