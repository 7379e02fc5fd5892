"""
Window detection module for JellyPot Bridge.

Locates the PotPlayer control window by its window class name. A direct
lookup is tried for every known class name first; if none of them matches,
all top-level windows are enumerated and compared against the same list.
"""

import logging

from jellypot_bridge.utils.constants import POTPLAYER_CLASS_NAMES

logger = logging.getLogger(__name__)


class PlayerWindowNotFound(Exception):
    """Raised when no window with a known PotPlayer class name exists."""
    pass


class Win32WindowBackend:
    """Direct lookup and enumeration of top-level windows through pywin32."""

    def __init__(self):
        import win32gui
        import pywintypes
        self._win32gui = win32gui
        self._error = pywintypes.error

    def find_window(self, class_name):
        """Returns the handle of the first window with this class name, or None."""
        try:
            hwnd = self._win32gui.FindWindow(class_name, None)
        except self._error:
            # pywin32 raises instead of returning NULL when nothing matches
            return None
        return hwnd or None

    def enumerate_windows(self):
        """
        Yields (hwnd, class_name) for every top-level window in the order the OS reports them.

        Handles are collected before class names are read, so no state is shared
        with the EnumWindows callback once this generator starts yielding. Each call
        starts a fresh enumeration.
        """
        handles = []

        def collect(hwnd, acc):
            acc.append(hwnd)
            return True

        self._win32gui.EnumWindows(collect, handles)
        for hwnd in handles:
            try:
                class_name = self._win32gui.GetClassName(hwnd)
            except self._error:
                # Window closed between enumeration and lookup
                continue
            yield hwnd, class_name


class WindowLocator:
    """Finds the player window handle, repeating the full search on every call."""

    def __init__(self, backend=None, class_names=POTPLAYER_CLASS_NAMES):
        self.backend = backend if backend is not None else Win32WindowBackend()
        self.class_names = tuple(class_names)

    def locate(self):
        """
        Locate the player window.

        Returns:
            The window handle of the player.

        Raises:
            PlayerWindowNotFound: If neither direct lookup nor enumeration finds a match.
        """
        for class_name in self.class_names:
            hwnd = self.backend.find_window(class_name)
            if hwnd:
                logger.debug(f"Found player window {hwnd} by class name '{class_name}'")
                return hwnd

        wanted = set(self.class_names)
        for hwnd, class_name in self.backend.enumerate_windows():
            if class_name in wanted:
                logger.debug(f"Found player window {hwnd} ('{class_name}') by enumeration")
                return hwnd

        raise PlayerWindowNotFound(
            f"No window found with class names: {', '.join(self.class_names)}"
        )
