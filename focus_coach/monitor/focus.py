"""
Focused window detection.

Asks the OS which application has input focus by running a small platform
tool as a subprocess:

- Linux: ``xdotool`` (X11)
- macOS: ``osascript`` / System Events
- Windows: PowerShell with ``GetForegroundWindow``

Every failure, including a missing tool, a timeout or unparsable output,
returns ``UNKNOWN_FOCUS``. This module never raises to its caller.
"""

import asyncio
import json
import logging
import sys
from dataclasses import dataclass
from typing import Optional, Sequence

logger = logging.getLogger(__name__)

QUERY_TIMEOUT_SECONDS = 5.0


@dataclass(frozen=True)
class FocusInfo:
    app_name: str
    window_title: str = ""

    @property
    def is_unknown(self) -> bool:
        return self is UNKNOWN_FOCUS or not self.app_name


UNKNOWN_FOCUS = FocusInfo(app_name="", window_title="")

_MACOS_SCRIPT = '''
tell application "System Events"
    set frontApp to name of first application process whose frontmost is true
    set frontWindow to ""
    try
        set frontWindow to name of front window of application process frontApp
    end try
    return frontApp & "|" & frontWindow
end tell
'''

_WINDOWS_SCRIPT = '''
Add-Type @"
using System;
using System.Runtime.InteropServices;
public class FocusWin {
    [DllImport("user32.dll")] public static extern IntPtr GetForegroundWindow();
    [DllImport("user32.dll")] public static extern uint GetWindowThreadProcessId(IntPtr hWnd, out uint pid);
}
"@
$hwnd = [FocusWin]::GetForegroundWindow()
$procId = 0
[FocusWin]::GetWindowThreadProcessId($hwnd, [ref]$procId) | Out-Null
Get-Process -Id $procId | Select-Object ProcessName, MainWindowTitle | ConvertTo-Json
'''


async def _run(args: Sequence[str], timeout: float) -> Optional[str]:
    """Run a command and return stripped stdout, or None on failure."""
    proc = await asyncio.create_subprocess_exec(
        *args,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.DEVNULL,
    )
    try:
        stdout, _ = await asyncio.wait_for(proc.communicate(), timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        return None
    if proc.returncode != 0:
        return None
    return stdout.decode("utf-8", errors="replace").strip()


async def _focus_linux(timeout: float) -> FocusInfo:
    app = await _run(["xdotool", "getactivewindow", "getwindowclassname"], timeout)
    if not app:
        return UNKNOWN_FOCUS
    title = await _run(["xdotool", "getactivewindow", "getwindowname"], timeout)
    return FocusInfo(app_name=app, window_title=title or "")


async def _focus_macos(timeout: float) -> FocusInfo:
    output = await _run(["osascript", "-e", _MACOS_SCRIPT], timeout)
    if not output:
        return UNKNOWN_FOCUS
    app, _, title = output.partition("|")
    return FocusInfo(app_name=app.strip(), window_title=title.strip()) if app.strip() else UNKNOWN_FOCUS


async def _focus_windows(timeout: float) -> FocusInfo:
    output = await _run(["powershell", "-NoProfile", "-Command", _WINDOWS_SCRIPT], timeout)
    if not output:
        return UNKNOWN_FOCUS
    data = json.loads(output)
    if isinstance(data, list):
        data = data[0] if data else {}
    app = (data.get("ProcessName") or "").strip()
    if not app:
        return UNKNOWN_FOCUS
    return FocusInfo(app_name=app, window_title=data.get("MainWindowTitle") or "")


async def query_focused_window(
    timeout: float = QUERY_TIMEOUT_SECONDS,
    platform: Optional[str] = None
) -> FocusInfo:
    """Return the focused application, or ``UNKNOWN_FOCUS``.

    Args:
        timeout: Upper bound for each subprocess call
        platform: Override for ``sys.platform`` (tests)
    """
    platform = platform or sys.platform
    try:
        if platform.startswith("win"):
            return await _focus_windows(timeout)
        if platform == "darwin":
            return await _focus_macos(timeout)
        return await _focus_linux(timeout)
    except (OSError, ValueError, AttributeError) as e:
        logger.debug("Focus query failed on %s: %s", platform, e)
        return UNKNOWN_FOCUS
