"""Register click-to-call as the desktop handler for ``tel:`` and ``callto:`` links.

Only freedesktop.org (XDG) desktops are handled here: a ``.desktop`` entry
is written to ``$XDG_DATA_HOME/applications`` and made the default for
``x-scheme-handler/tel`` and ``x-scheme-handler/callto`` via ``xdg-mime``.
macOS and Windows register through their app bundle / registry record.
"""

import os
import shlex
import shutil
import subprocess
import sys
from pathlib import Path

from loguru import logger

from clicktocall.errors import RegistrationError
from clicktocall.number import SUPPORTED_SCHEMES

DESKTOP_FILENAME = "click-to-call.desktop"
MIME_TYPES: tuple[str, ...] = tuple(f"x-scheme-handler/{scheme}" for scheme in SUPPORTED_SCHEMES)


def get_applications_dir() -> Path:
    xdg = os.environ.get("XDG_DATA_HOME")
    base = Path(xdg) if xdg else Path.home() / ".local" / "share"
    return base / "applications"


def default_exec_command() -> str:
    """Command the desktop runs for a link (``%u`` is appended by the entry)."""
    exe = shutil.which("clicktocall")
    if exe:
        return f"{shlex.quote(exe)} dial"
    return f"{shlex.quote(sys.executable)} -m clicktocall.cli dial"


def desktop_entry(exec_command: str) -> str:
    return (
        "[Desktop Entry]\n"
        "Type=Application\n"
        "Name=Click-To-Call\n"
        "Comment=Place calls on your desk extension from tel: links\n"
        f"Exec={exec_command} %u\n"
        "Terminal=false\n"
        "NoDisplay=true\n"
        "Categories=Network;Telephony;\n"
        f"MimeType={';'.join(MIME_TYPES)};\n"
    )


def _require_xdg() -> None:
    if sys.platform == "darwin" or sys.platform.startswith("win"):
        raise RegistrationError(
            f"Handler registration is only supported on XDG desktops, not on {sys.platform}; "
            "register the tel: scheme through the app bundle or the registry instead"
        )


def _run(cmd: list[str]) -> None:
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=30)
    except (OSError, subprocess.TimeoutExpired) as exc:
        raise RegistrationError(f"{cmd[0]} failed: {exc}") from exc
    if result.returncode != 0:
        raise RegistrationError(f"{' '.join(cmd)} exited with {result.returncode}: {result.stderr.strip()}")


def register_handler(exec_command: str | None = None, applications_dir: str | Path | None = None) -> Path:
    """Install the desktop entry and make it the default tel:/callto: handler.

    Args:
        exec_command: Command to launch for a link, without ``%u``;
            ``default_exec_command()`` when omitted.
        applications_dir: Target directory; ``get_applications_dir()`` when omitted.

    Returns:
        Path of the written ``.desktop`` file.

    Raises:
        RegistrationError: On unsupported platforms, write errors, or when
            ``xdg-mime`` fails.
    """
    _require_xdg()
    target_dir = Path(applications_dir) if applications_dir is not None else get_applications_dir()
    desktop_path = target_dir / DESKTOP_FILENAME

    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        desktop_path.write_text(desktop_entry(exec_command or default_exec_command()), encoding="utf-8")
    except OSError as exc:
        raise RegistrationError(f"Cannot write {desktop_path}: {exc}") from exc
    logger.info(f"Desktop entry written to {desktop_path}")

    xdg_mime = shutil.which("xdg-mime")
    if not xdg_mime:
        raise RegistrationError("xdg-mime not found; install xdg-utils to set the default tel: handler")
    for mime in MIME_TYPES:
        _run([xdg_mime, "default", DESKTOP_FILENAME, mime])
        logger.info(f"Default handler for {mime}: {DESKTOP_FILENAME}")

    update_db = shutil.which("update-desktop-database")
    if update_db:
        _run([update_db, str(target_dir)])

    return desktop_path


def unregister_handler(applications_dir: str | Path | None = None) -> bool:
    """Remove the desktop entry.

    Returns:
        ``True`` if an entry was removed, ``False`` if none was installed.

    Raises:
        RegistrationError: On unsupported platforms or if removal fails.
    """
    _require_xdg()
    target_dir = Path(applications_dir) if applications_dir is not None else get_applications_dir()
    desktop_path = target_dir / DESKTOP_FILENAME
    if not desktop_path.exists():
        logger.info(f"No desktop entry at {desktop_path}")
        return False

    try:
        desktop_path.unlink()
    except OSError as exc:
        raise RegistrationError(f"Cannot remove {desktop_path}: {exc}") from exc
    logger.info(f"Removed {desktop_path}")

    update_db = shutil.which("update-desktop-database")
    if update_db:
        _run([update_db, str(target_dir)])
    return True
