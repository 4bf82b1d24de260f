import pytest

from expense_categorizer.core import settings


def test_bulk_apply_gate_cannot_be_lowered(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BULK_APPLY_MIN_CONFIDENCE", "0.3")
    assert settings.get_bulk_apply_min_confidence() == pytest.approx(0.7)


def test_bulk_apply_gate_can_be_raised(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BULK_APPLY_MIN_CONFIDENCE", "0.85")
    assert settings.get_bulk_apply_min_confidence() == pytest.approx(0.85)

    monkeypatch.setenv("BULK_APPLY_MIN_CONFIDENCE", "not-a-number")
    assert settings.get_bulk_apply_min_confidence() == pytest.approx(0.7)


def test_get_env_int_falls_back_on_invalid_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BULK_SUGGESTION_CAP", "0")
    assert settings.get_env_int("BULK_SUGGESTION_CAP", 50, min_value=1) == 50
    monkeypatch.setenv("BULK_SUGGESTION_CAP", "20")
    assert settings.get_env_int("BULK_SUGGESTION_CAP", 50, min_value=1) == 20


def test_read_config_file(tmp_path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text('# comment\nLOG_LEVEL: debug\nSEED_FILE: "seed.json"  # local\nEMPTY:\n', encoding="utf-8")
    assert settings.read_config_file(str(path)) == {"LOG_LEVEL": "debug", "SEED_FILE": "seed.json"}
    assert settings.read_config_file(str(tmp_path / "missing.yaml")) == {}
