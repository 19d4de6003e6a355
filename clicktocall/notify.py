"""User feedback for call outcomes: a log line plus a desktop notification.

Notifications use whatever the platform ships with: ``notify-send``
(libnotify) on Linux/BSD desktops and ``osascript`` on macOS.  A missing
tool or a failing notification is logged and otherwise ignored; it never
changes the outcome of the call.
"""

import shutil
import subprocess
import sys

from loguru import logger

from clicktocall.outcome import CallOutcome, LOCAL_FAILURES

APP_NAME = "Click-To-Call"
NOTIFY_TIMEOUT_SECONDS: float = 5.0


def _applescript_quote(text: str) -> str:
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


def notification_command(title: str, message: str, platform: str | None = None) -> list[str] | None:
    """Command line that shows a desktop notification, or ``None`` if unavailable."""
    platform = platform or sys.platform
    if platform == "darwin":
        osascript = shutil.which("osascript")
        if not osascript:
            return None
        script = f"display notification {_applescript_quote(message)} with title {_applescript_quote(title)}"
        return [osascript, "-e", script]

    if platform.startswith("win"):
        return None

    notify_send = shutil.which("notify-send")
    if not notify_send:
        return None
    return [notify_send, "--app-name", APP_NAME, title, message]


class Notifier:
    """Reports a ``CallOutcome`` to the user.

    Args:
        desktop: Also show a desktop notification (``AppConfig.notifications``).
    """

    def __init__(self, desktop: bool = True) -> None:
        self.desktop = desktop
        self._log = logger.bind(classname="Notifier")

    def report_outcome(self, outcome: CallOutcome) -> None:
        """Log *outcome* and, if enabled, show it as a desktop notification."""
        text = outcome.describe()
        if outcome.ok:
            self._log.success(text)
        elif outcome.kind in LOCAL_FAILURES:
            self._log.warning(f"{outcome.kind}: {text}")
        else:
            self._log.error(f"{outcome.kind}: {text}")

        if self.desktop:
            self.show(outcome.title, text)

    def show(self, title: str, message: str) -> bool:
        """Show a desktop notification.

        Returns:
            ``True`` if the notification command ran successfully.
        """
        cmd = notification_command(title, message)
        if cmd is None:
            self._log.debug(f"No desktop notification tool available on {sys.platform}")
            return False

        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=NOTIFY_TIMEOUT_SECONDS)
        except (OSError, subprocess.TimeoutExpired) as exc:
            self._log.warning(f"Desktop notification failed: {exc}")
            return False

        if result.returncode != 0:
            self._log.warning(f"Desktop notification failed (exit {result.returncode}): {result.stderr.strip()}")
            return False
        return True
