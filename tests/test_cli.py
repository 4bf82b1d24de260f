import json

import pytest

from expense_categorizer import cli
from expense_categorizer.core import settings


@pytest.fixture
def seed_file(tmp_path, monkeypatch):
    seed = tmp_path / "seed.json"
    seed.write_text(json.dumps({
        "categories": [
            {"id": "u", "name": "Utilities"},
            {"id": "f", "name": "Food & Dining"},
            {"id": "m", "name": "Miscellaneous"},
        ],
        "transactions": [
            {"id": "1", "description": "WAPDA ELECTRICITY BILL", "amount": "9000", "category_id": "m"},
            {"id": "2", "description": "CHAI", "amount": "300", "category_id": "f"},
        ],
    }), encoding="utf-8")
    monkeypatch.delenv("SUPABASE_URL", raising=False)
    monkeypatch.delenv("SUPABASE_SERVICE_ROLE_KEY", raising=False)
    monkeypatch.setattr(settings, "SEED_FILE", str(seed))
    return seed


def test_no_command_prints_help(capsys):
    assert cli.main([]) == 0
    assert "analyze" in capsys.readouterr().out


def test_patterns_lists_catalog(capsys):
    assert cli.main(["patterns"]) == 0
    out = capsys.readouterr().out
    assert "Utilities" in out
    assert "electricity" in out


def test_single(seed_file, capsys):
    assert cli.main(["single", "BP MUHAMMAD QURESH ELECTRICITY", "--notes", "MONTHLY ELECTRICITY BILL",
                     "--amount", "8000"]) == 0
    out = capsys.readouterr().out
    assert "Category: Utilities" in out
    assert "Excellent" in out


def test_analyze_does_not_write(seed_file, capsys):
    assert cli.main(["analyze", "--min-confidence", "0.8"]) == 0
    out = capsys.readouterr().out
    assert "Processed: 2 expenses" in out
    assert "High confidence suggestions: 1" in out


def test_apply_refuses_low_confidence(seed_file, capsys):
    assert cli.main(["apply", "--min-confidence", "0.5"]) == 1
    assert "minimum confidence" in capsys.readouterr().out


def test_apply_writes_updates(seed_file, capsys):
    assert cli.main(["apply", "--min-confidence", "0.8"]) == 0
    assert "Successfully updated: 1 expenses" in capsys.readouterr().out


def test_stats(seed_file, capsys):
    assert cli.main(["stats"]) == 0
    assert "Categories loaded: 3" in capsys.readouterr().out


def test_engine_error_exits_with_one(tmp_path, monkeypatch, capsys):
    seed = tmp_path / "seed.json"
    seed.write_text(json.dumps({"categories": [{"id": "u", "name": "Utilities"}]}), encoding="utf-8")
    monkeypatch.delenv("SUPABASE_URL", raising=False)
    monkeypatch.delenv("SUPABASE_SERVICE_ROLE_KEY", raising=False)
    monkeypatch.setattr(settings, "SEED_FILE", str(seed))

    assert cli.main(["stats"]) == 1
    assert "Miscellaneous" in capsys.readouterr().out
