"""
Main application module for JellyPot Bridge.

Sets up logging, defines the main application class (JellyPotBridge),
handles startup (config, Jellyfin login, item lookup, single-instance
takeover, player launch) and runs the monitoring loop until the player
closes or a newer instance takes over.
"""
import sys
import signal
import logging
import threading

from colorama import Fore, Style

from jellypot_bridge import __version__
from jellypot_bridge.config_manager import load_config, get_app_data_dir, ConfigurationError
from jellypot_bridge.jellyfin_api import JellyfinClient, ClientIdentity, JellyfinError
from jellypot_bridge.launcher import launch_player, PlayerLaunchError
from jellypot_bridge.monitor import Monitor
from jellypot_bridge.players import PlayerProbe
from jellypot_bridge.single_instance import InstanceCoordinator, SingleInstanceError
from jellypot_bridge.utils.constants import PLAYER_WARMUP_DELAY

logger = logging.getLogger(__name__)

LOG_FILE_NAME = "jellypot_bridge.log"


def setup_logging(app_data_dir=None):
    """
    Configure console (warnings and up) and file (info and up) logging.

    Returns:
        The log file path, or None if file logging could not be set up.
    """
    app_data_dir = app_data_dir or get_app_data_dir()
    log_file_path = app_data_dir / LOG_FILE_NAME

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(logging.WARNING)
    stream_handler.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))

    try:
        app_data_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file_path, mode='a', encoding='utf-8')
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(logging.Formatter('%(asctime)s [%(levelname)-8s] %(name)s: %(message)s'))
    except OSError as e:
        print(f"WARNING: Failed to configure file logging: {e}", file=sys.stderr)
        file_handler = None

    logging.basicConfig(
        level=logging.INFO,
        handlers=[h for h in [stream_handler, file_handler] if h]
    )
    logger.info("="*20 + " Application Start " + "="*20)
    if file_handler:
        logger.info(f"Logging to file: {log_file_path}")
        return log_file_path
    logger.warning("File logging is disabled due to setup error.")
    return None


def hide_console():
    """Hide the console window the bridge was started in (Windows only)."""
    if sys.platform != "win32":
        return
    try:
        import win32console
        import win32gui
        import win32con
        hwnd = win32console.GetConsoleWindow()
        if hwnd:
            win32gui.ShowWindow(hwnd, win32con.SW_HIDE)
    except Exception as e:
        logger.debug(f"Could not hide console window: {e}")


def pause_for_key():
    """Keep the console open so a fatal error can be read."""
    if not sys.stdin or not sys.stdin.isatty():
        return
    try:
        input("Press Enter to continue...")
    except (EOFError, KeyboardInterrupt):
        pass


def report_fatal(message):
    logger.error(message)
    print(f"{Fore.RED}ERROR: {message}{Style.RESET_ALL}", file=sys.stderr)
    pause_for_key()


class JellyPotBridge:
    """
    Plays one Jellyfin item in PotPlayer and reports its progress.
    """
    def __init__(self, item_id, config=None, probe=None, coordinator=None,
                 player_launcher=launch_player, cancel_event=None, warmup_delay=PLAYER_WARMUP_DELAY):
        self.item_id = item_id
        self.config = config
        self.probe = probe
        self.player_launcher = player_launcher
        self.warmup_delay = warmup_delay
        self.cancel_event = cancel_event if cancel_event is not None else threading.Event()
        self.coordinator = coordinator if coordinator is not None else InstanceCoordinator(self.cancel_event)
        self.client = None
        self.item = None
        self.player_process = None
        self.monitor = None

    def initialize(self):
        """
        Run the startup sequence. Every failure here is fatal.

        Returns:
            bool: True if the player was launched and monitoring can start.
        """
        logger.info(f"Initializing JellyPot Bridge {__version__} for item {self.item_id}")
        try:
            if self.config is None:
                self.config = load_config()
        except ConfigurationError as e:
            report_fatal(f"Failed to load configuration: {e}")
            return False

        self.client = JellyfinClient(
            self.config.server_url,
            self.config.username,
            self.config.password,
            ClientIdentity(device_id=self.config.device_id, version=__version__),
        )

        try:
            self.client.authenticate()
        except JellyfinError as e:
            report_fatal(f"Jellyfin authentication failed: {e}")
            return False
        print("Jellyfin authentication successful")

        try:
            self.item = self.client.get_item(self.item_id)
        except JellyfinError as e:
            report_fatal(f"Failed to get media item information: {e}")
            return False
        print(f"Successfully retrieved media info: {self.item.name} (Type: {self.item.type})")

        try:
            self.coordinator.ensure_single_instance()
        except SingleInstanceError as e:
            report_fatal(f"Failed to start - another instance is running: {e}")
            return False

        try:
            self.player_process = self.player_launcher(
                self.config.pot_player_path,
                self.client.playback_url(self.item_id),
                self.item.name,
                self.item.playback_position_ticks,
            )
        except PlayerLaunchError as e:
            self.coordinator.close()
            report_fatal(str(e))
            return False

        return True

    def run(self, keep_console=False):
        """
        Monitor the player until it closes or the bridge is cancelled.

        Returns:
            int: Process exit code.
        """
        if threading.current_thread() is threading.main_thread():
            logger.debug("Setting up signal handlers (SIGINT, SIGTERM).")
            signal.signal(signal.SIGINT, self._signal_handler)
            signal.signal(signal.SIGTERM, self._signal_handler)

        if self.probe is None:
            self.probe = PlayerProbe()
        self.monitor = Monitor(
            self.probe,
            self.client,
            self.item_id,
            reporting_interval=self.config.reporting_interval,
            warmup_delay=self.warmup_delay,
            cancel_event=self.cancel_event,
        )
        if not keep_console:
            hide_console()

        try:
            reason = self.monitor.run()
        finally:
            self.coordinator.close()
        logger.info(f"JellyPot Bridge finished: {reason}")
        return 0

    def stop(self):
        logger.info("Stop requested")
        self.cancel_event.set()

    def _signal_handler(self, sig, frame):
        """Handles termination signals (SIGINT, SIGTERM) for graceful shutdown."""
        logger.warning(f"Received signal {signal.Signals(sig).name}. Initiating graceful shutdown...")
        self.stop()


def main(item_id, keep_console=False):
    """
    Run the bridge for one item.

    Returns:
        int: Exit code (0 for success, 1 for startup errors).
    """
    bridge = JellyPotBridge(item_id)
    if not bridge.initialize():
        logger.critical("Application initialization failed. Exiting.")
        return 1
    return bridge.run(keep_console=keep_console)
