"""
Starts PotPlayer for a Jellyfin item.
"""

import logging
import subprocess

from jellypot_bridge.utils.constants import TICKS_PER_SECOND

logger = logging.getLogger(__name__)


class PlayerLaunchError(Exception):
    """Raised when the player executable cannot be started."""
    pass


def ticks_to_seconds(ticks):
    """Whole seconds in a tick count, truncated."""
    return int(ticks) // TICKS_PER_SECOND


def build_launch_command(player_path, playback_url, title, position_ticks=0):
    """
    Build the PotPlayer command line.

    /seek takes whole seconds and /current reuses and focuses an already open player window.
    """
    return [
        player_path,
        playback_url,
        f"/title={title}",
        f"/seek={ticks_to_seconds(position_ticks)}",
        "/current",
    ]


def launch_player(player_path, playback_url, title, position_ticks=0):
    """
    Start PotPlayer without waiting for it.

    Returns:
        subprocess.Popen: The started process.

    Raises:
        PlayerLaunchError: If the executable could not be started.
    """
    cmd = build_launch_command(player_path, playback_url, title, position_ticks)
    logger.info(f"Starting PotPlayer: {player_path} (title: '{title}', seek: {ticks_to_seconds(position_ticks)}s)")
    try:
        process = subprocess.Popen(cmd, close_fds=True, shell=False)
    except (OSError, ValueError) as e:
        raise PlayerLaunchError(f"Failed to start PotPlayer at '{player_path}': {e}") from e
    logger.info(f"PotPlayer started with PID: {process.pid}")
    return process
