"""
PotPlayer integration for JellyPot Bridge.

PotPlayer answers WM_USER messages sent to its main window: the command code
goes into wParam and the answer comes back as the message result. Two queries
are used per probe, one for the playback status and one for the elapsed time
in milliseconds.
"""

import logging
from dataclasses import dataclass

from jellypot_bridge.utils.constants import (
    WM_USER,
    POT_GET_CURRENT_TIME,
    POT_GET_PLAY_STATUS,
    TICKS_PER_MILLISECOND,
    SEND_MESSAGE_TIMEOUT_MS,
    TIMEUPDATE,
    PAUSE,
    STOP,
    UNKNOWN,
)
from jellypot_bridge.window_detection import WindowLocator, PlayerWindowNotFound

logger = logging.getLogger(__name__)

# PotPlayer play status -> Jellyfin event name
STATUS_EVENT_NAMES = {
    2: TIMEUPDATE,
    1: PAUSE,
    -1: STOP,
}


def get_event_name(status_code):
    """Maps a PotPlayer status code to a Jellyfin playback event name."""
    return STATUS_EVENT_NAMES.get(status_code, UNKNOWN)


@dataclass(frozen=True)
class PlaybackSample:
    status_code: int
    event_name: str
    position_ms: int

    @property
    def position_ticks(self):
        return self.position_ms * TICKS_PER_MILLISECOND

    @property
    def position_seconds(self):
        return self.position_ms / 1000.0


class TransportError(Exception):
    """Raised when a message cannot be delivered to the player window."""
    pass


class ProbeError(Exception):
    """Raised when the player cannot be probed, which means it is no longer running."""
    pass


class PlayerTransport:
    """Capability for finding the player window and sending it query messages."""

    def locate(self):
        raise NotImplementedError

    def query(self, handle, code):
        raise NotImplementedError


def _to_signed_32(value):
    value &= 0xFFFFFFFF
    if value & 0x80000000:
        value -= 1 << 32
    return value


def get_process_name_from_hwnd(hwnd):
    """Get the process name owning a window handle."""
    try:
        import win32process
        import psutil
        _, pid = win32process.GetWindowThreadProcessId(hwnd)
        return psutil.Process(pid).name()
    except Exception as e:
        logger.debug(f"Error getting process name for window {hwnd}: {e}")
        return None


class Win32PlayerTransport(PlayerTransport):
    """Talks to a real PotPlayer window with SendMessageTimeout."""

    def __init__(self, locator=None, timeout_ms=SEND_MESSAGE_TIMEOUT_MS):
        import win32con
        import win32gui
        import pywintypes
        self._win32gui = win32gui
        self._error = pywintypes.error
        self._flags = win32con.SMTO_ABORTIFHUNG
        self.locator = locator if locator is not None else WindowLocator()
        self.timeout_ms = timeout_ms
        self._last_handle = None

    def locate(self):
        hwnd = self.locator.locate()
        if hwnd != self._last_handle:
            process_name = get_process_name_from_hwnd(hwnd)
            logger.info(f"Attached to PotPlayer window {hwnd} (process: {process_name or 'unknown'})")
            self._last_handle = hwnd
        return hwnd

    def query(self, handle, code):
        try:
            _, result = self._win32gui.SendMessageTimeout(
                handle, WM_USER, code, 0, self._flags, self.timeout_ms
            )
        except self._error as e:
            raise TransportError(f"SendMessage 0x{code:04X} to window {handle} failed: {e}") from e
        return _to_signed_32(result)


class PlayerProbe:
    """Takes one playback sample from PotPlayer per call."""

    def __init__(self, transport=None):
        self.transport = transport if transport is not None else Win32PlayerTransport()

    def probe(self):
        """
        Query the player for its status and current position.

        The window is located again on every call since the player may have been
        closed or restarted since the previous probe.

        Returns:
            PlaybackSample: The current playback state.

        Raises:
            ProbeError: If the window is gone or either message cannot be delivered.
        """
        try:
            handle = self.transport.locate()
        except PlayerWindowNotFound as e:
            raise ProbeError(f"Failed to find PotPlayer window: {e}") from e

        try:
            status = self.transport.query(handle, POT_GET_PLAY_STATUS)
        except TransportError as e:
            raise ProbeError(f"Failed to get playback status: {e}") from e

        try:
            milliseconds = self.transport.query(handle, POT_GET_CURRENT_TIME)
        except TransportError as e:
            raise ProbeError(f"Failed to get current playback time: {e}") from e

        status = int(status)
        return PlaybackSample(
            status_code=status,
            event_name=get_event_name(status),
            position_ms=max(int(milliseconds), 0),
        )
