"""
Single-instance coordination for JellyPot Bridge.

A new instance first connects to the well-known rendezvous channel and asks
any running instance to exit. It then creates the channel itself and keeps
accepting connections in a background thread, so the next instance can evict
it the same way. Only one listener can hold the channel at a time.

On Windows the channel is a named pipe, elsewhere a Unix domain socket.
"""

import os
import sys
import time
import logging
import tempfile
import threading
from multiprocessing.connection import Listener, Client

from jellypot_bridge.utils.constants import (
    INSTANCE_CHANNEL_NAME,
    EXIT_COMMAND,
    MAX_COMMAND_BYTES,
    TAKEOVER_GRACE_PERIOD,
)

logger = logging.getLogger(__name__)


class SingleInstanceError(Exception):
    """Raised when this process cannot take ownership of the rendezvous channel."""
    pass


def default_channel_address():
    """Returns the platform's rendezvous channel address."""
    if sys.platform == "win32":
        return rf"\\.\pipe\{INSTANCE_CHANNEL_NAME}"
    return os.path.join(tempfile.gettempdir(), f"{INSTANCE_CHANNEL_NAME}.sock")


class InstanceCoordinator:
    """Evicts a running predecessor, then serves the channel for future instances."""

    def __init__(self, cancel_event=None, address=None, grace_period=TAKEOVER_GRACE_PERIOD):
        self.address = address or default_channel_address()
        self.cancel_event = cancel_event if cancel_event is not None else threading.Event()
        self.grace_period = grace_period
        self._listener = None
        self._thread = None
        self._closing = False
        self._lock = threading.Lock()

    @property
    def is_serving(self):
        return self._listener is not None

    def ensure_single_instance(self):
        """
        Take over as the only running instance.

        Raises:
            SingleInstanceError: If the channel could not be created.
        """
        if self.notify_existing_instance():
            time.sleep(self.grace_period)
        self.start_server()

    def notify_existing_instance(self):
        """
        Ask a running instance to exit.

        Returns:
            bool: True if a predecessor was reachable, whether or not the message got through.
        """
        try:
            conn = Client(self.address)
        except FileNotFoundError:
            logger.debug("No existing instance found")
            return False
        except ConnectionRefusedError:
            self._remove_stale_socket()
            return False
        except OSError as e:
            logger.debug(f"Could not connect to existing instance: {e}")
            return False

        logger.info("Existing instance found, asking it to exit")
        try:
            conn.send_bytes(EXIT_COMMAND.encode("utf-8"))
        except OSError as e:
            logger.warning(f"Failed to notify existing instance: {e}")
        finally:
            conn.close()
        return True

    def _remove_stale_socket(self):
        # A crashed predecessor leaves its socket file behind and nobody answers on it
        if sys.platform == "win32" or not os.path.exists(self.address):
            return
        logger.info(f"Removing stale instance socket {self.address}")
        try:
            os.unlink(self.address)
        except OSError as e:
            logger.warning(f"Could not remove stale socket {self.address}: {e}")

    def start_server(self):
        """Create the channel and start accepting commands in a daemon thread."""
        try:
            self._listener = Listener(self.address)
        except OSError as e:
            raise SingleInstanceError(f"Failed to create instance channel {self.address}: {e}") from e

        self._closing = False
        self._thread = threading.Thread(target=self._accept_loop, name="instance-acceptor", daemon=True)
        self._thread.start()
        logger.info(f"Listening for newer instances on {self.address}")

    def _accept_loop(self):
        while not self._closing:
            listener = self._listener
            if listener is None:
                break
            try:
                conn = listener.accept()
            except OSError as e:
                if not self._closing:
                    logger.error(f"Instance channel stopped accepting connections: {e}")
                break

            with conn:
                message = self._read_command(conn)

            if message == EXIT_COMMAND and not self._closing:
                logger.warning("A newer instance asked this one to exit")
                self.cancel_event.set()
                self._release()
                return
            if message:
                logger.debug(f"Ignoring unknown instance command: {message!r}")

    def _read_command(self, conn):
        try:
            data = conn.recv_bytes(MAX_COMMAND_BYTES)
        except (EOFError, OSError):
            return None
        return data.decode("utf-8", errors="replace").strip()

    def _release(self):
        with self._lock:
            listener, self._listener = self._listener, None
        if listener is None:
            return
        try:
            listener.close()
        except OSError as e:
            logger.warning(f"Error while closing instance channel {self.address}: {e}")

    def close(self):
        """Stop serving the channel."""
        self._closing = True
        thread = self._thread
        if thread is not None and thread.is_alive() and self._listener is not None:
            # Wake the acceptor out of accept()
            try:
                with Client(self.address):
                    pass
            except OSError:
                pass
            thread.join(timeout=2)
        self._release()
