from __future__ import annotations

import os
from pathlib import Path

import pytest

from buha.env import _reset_for_tests, load_dotenv_if_present


@pytest.fixture(autouse=True)
def _fresh_loader():
    _reset_for_tests()
    yield
    _reset_for_tests()


def test_dotenv_loaded_once_and_env_wins(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    p = tmp_path / ".env"
    p.write_text("BUHA_TEST_DOTENV_A=from_file\nBUHA_TEST_DOTENV_B=from_file\n", encoding="utf-8")
    monkeypatch.setenv("BUHA_TEST_DOTENV_B", "from_env")
    monkeypatch.delenv("BUHA_TEST_DOTENV_A", raising=False)
    # Register A so the loaded value is cleaned up.
    monkeypatch.setenv("BUHA_TEST_DOTENV_A", "")
    monkeypatch.delenv("BUHA_TEST_DOTENV_A")

    assert load_dotenv_if_present(str(p)) is True
    assert os.environ["BUHA_TEST_DOTENV_A"] == "from_file"
    assert os.environ["BUHA_TEST_DOTENV_B"] == "from_env"

    # Second call is a no-op.
    assert load_dotenv_if_present(str(p)) is False


def test_missing_dotenv_is_not_an_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BUHA_DOTENV_PATH", str(tmp_path / "missing.env"))
    assert load_dotenv_if_present() is False
