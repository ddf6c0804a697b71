"""Desktop notification helpers for VERN Player."""

import shutil
import subprocess
from typing import Literal, Optional

APP_NAME = "VERN"


def notify(
    title: str,
    message: str,
    urgency: Literal["low", "normal", "critical"] = "low",
    icon: Optional[str] = None,
) -> None:
    """
    Show a desktop notification using notify-send.

    Args:
        title: Notification title
        message: Notification message body
        urgency: Urgency level ('low', 'normal', 'critical')
        icon: Optional icon path or URL

    Note:
        Silently skips notification if notify-send is not available.
    """
    if not shutil.which("notify-send"):
        return

    cmd = ["notify-send", "--urgency", urgency, "--app-name", APP_NAME]
    if icon:
        cmd.extend(["--icon", icon])
    cmd.extend([title, message])

    try:
        subprocess.run(cmd, check=False, timeout=2.0, capture_output=True)
    except (subprocess.TimeoutExpired, OSError):
        # Notifications are nice-to-have
        pass
