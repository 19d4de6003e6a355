"""Tests for the XDG tel:/callto: handler registration."""

import subprocess
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from clicktocall import registration
from clicktocall.errors import RegistrationError
from clicktocall.registration import (
    DESKTOP_FILENAME,
    MIME_TYPES,
    default_exec_command,
    desktop_entry,
    get_applications_dir,
    register_handler,
    unregister_handler,
)


@pytest.fixture
def linux(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(registration.sys, "platform", "linux")


@pytest.fixture
def which(monkeypatch: pytest.MonkeyPatch) -> MagicMock:
    mock = MagicMock(side_effect=lambda name: f"/usr/bin/{name}")
    monkeypatch.setattr(registration.shutil, "which", mock)
    return mock


@pytest.fixture
def run(monkeypatch: pytest.MonkeyPatch) -> MagicMock:
    mock = MagicMock(return_value=subprocess.CompletedProcess([], 0, "", ""))
    monkeypatch.setattr(registration.subprocess, "run", mock)
    return mock


class TestDesktopEntry:
    def test_mime_types(self) -> None:
        assert MIME_TYPES == ("x-scheme-handler/tel", "x-scheme-handler/callto")

    def test_entry(self) -> None:
        entry = desktop_entry("/usr/bin/clicktocall dial")
        assert entry.startswith("[Desktop Entry]\n")
        assert "Exec=/usr/bin/clicktocall dial %u\n" in entry
        assert "MimeType=x-scheme-handler/tel;x-scheme-handler/callto;\n" in entry
        assert "NoDisplay=true" in entry

    def test_default_exec_installed(self, which: MagicMock) -> None:
        assert default_exec_command() == "/usr/bin/clicktocall dial"

    def test_default_exec_module(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(registration.shutil, "which", lambda name: None)
        monkeypatch.setattr(registration.sys, "executable", "/opt/py/bin/python3")
        assert default_exec_command() == "/opt/py/bin/python3 -m clicktocall.cli dial"

    def test_applications_dir_follows_xdg(self, tmp_path: Path) -> None:
        assert get_applications_dir() == tmp_path / "xdg-data" / "applications"


# ─── register / unregister ───────────────────────────────────────────────────


class TestRegister:
    def test_register(self, linux: None, which: MagicMock, run: MagicMock, tmp_path: Path) -> None:
        path = register_handler(exec_command="/opt/ctc dial", applications_dir=tmp_path / "apps")
        assert path == tmp_path / "apps" / DESKTOP_FILENAME
        assert "Exec=/opt/ctc dial %u" in path.read_text()
        commands = [call.args[0] for call in run.call_args_list]
        assert commands == [
            ["/usr/bin/xdg-mime", "default", DESKTOP_FILENAME, "x-scheme-handler/tel"],
            ["/usr/bin/xdg-mime", "default", DESKTOP_FILENAME, "x-scheme-handler/callto"],
            ["/usr/bin/update-desktop-database", str(tmp_path / "apps")],
        ]

    def test_register_without_xdg_mime(self, linux: None, run: MagicMock, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setattr(registration.shutil, "which", lambda name: None)
        with pytest.raises(RegistrationError, match="xdg-mime"):
            register_handler(exec_command="ctc dial", applications_dir=tmp_path)
        run.assert_not_called()

    def test_xdg_mime_failure(self, linux: None, which: MagicMock, run: MagicMock, tmp_path: Path) -> None:
        run.return_value = subprocess.CompletedProcess([], 2, "", "bad mime")
        with pytest.raises(RegistrationError, match="bad mime"):
            register_handler(exec_command="ctc dial", applications_dir=tmp_path)

    def test_xdg_mime_not_runnable(self, linux: None, which: MagicMock, run: MagicMock, tmp_path: Path) -> None:
        run.side_effect = OSError("exec format error")
        with pytest.raises(RegistrationError, match="exec format error"):
            register_handler(exec_command="ctc dial", applications_dir=tmp_path)

    @pytest.mark.parametrize("platform", ["darwin", "win32"])
    def test_unsupported_platform(self, platform: str, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setattr(registration.sys, "platform", platform)
        with pytest.raises(RegistrationError, match="XDG"):
            register_handler(applications_dir=tmp_path)
        with pytest.raises(RegistrationError):
            unregister_handler(applications_dir=tmp_path)
        assert not (tmp_path / DESKTOP_FILENAME).exists()

    def test_unregister(self, linux: None, which: MagicMock, run: MagicMock, tmp_path: Path) -> None:
        register_handler(exec_command="ctc dial", applications_dir=tmp_path)
        assert unregister_handler(applications_dir=tmp_path) is True
        assert not (tmp_path / DESKTOP_FILENAME).exists()
        assert unregister_handler(applications_dir=tmp_path) is False
