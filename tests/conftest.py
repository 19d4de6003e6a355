"""Shared fixtures: keep every test away from the real user config."""

from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    for var in ("TIMEOUT_SECONDS", "VERIFY_TLS", "USER_AGENT", "NOTIFICATIONS", "LOG_FILE", "API"):
        monkeypatch.delenv(f"CLICKTOCALL_{var}", raising=False)
    monkeypatch.setenv("CLICKTOCALL_SETTINGS_PATH", str(tmp_path / "cfg" / "preferences.yaml"))
    monkeypatch.setenv("CLICKTOCALL_CONFIG_PATH", str(tmp_path / "cfg" / "config.yaml"))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "xdg-data"))
