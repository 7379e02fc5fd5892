"""
Monitor module for JellyPot Bridge.
Polls PotPlayer on a fixed interval and reports playback progress to Jellyfin.
"""

import time
import logging
import threading

from jellypot_bridge.players import ProbeError
from jellypot_bridge.jellyfin_api import ProgressEvent, JellyfinError
from jellypot_bridge.utils.constants import (
    DEFAULT_REPORTING_INTERVAL,
    PLAYER_WARMUP_DELAY,
    PLAY_METHOD_DIRECT,
)

logger = logging.getLogger(__name__)

EXIT_PLAYER_CLOSED = "player_closed"
EXIT_CANCELLED = "cancelled"


def get_start_time_ticks():
    """Current Unix time in 100ns ticks."""
    return time.time_ns() // 100


class Monitor:
    """Reports the player's progress for one item until the player closes"""

    def __init__(self, probe, client, item_id, reporting_interval=DEFAULT_REPORTING_INTERVAL,
                 warmup_delay=PLAYER_WARMUP_DELAY, cancel_event=None):
        self.probe = probe
        self.client = client
        self.item_id = item_id
        self.reporting_interval = reporting_interval
        self.warmup_delay = warmup_delay
        self.cancel_event = cancel_event if cancel_event is not None else threading.Event()
        self.running = False
        self.start_time_ticks = None
        self.reports_sent = 0
        self.reports_failed = 0

    def stop(self):
        """Ask the loop to finish after the current tick"""
        self.cancel_event.set()

    def build_event(self, sample):
        return ProgressEvent(
            position_ticks=sample.position_ticks,
            playback_start_time_ticks=self.start_time_ticks,
            play_method=PLAY_METHOD_DIRECT,
            media_source_id=self.item_id,
            can_seek=True,
            item_id=self.item_id,
            event_name=sample.event_name,
        )

    def tick(self):
        """
        Run one probe/report cycle.

        Returns:
            bool: False once the player is gone, True otherwise.
        """
        try:
            sample = self.probe.probe()
        except ProbeError as e:
            logger.info(f"PotPlayer has exited ({e})")
            return False

        event = self.build_event(sample)
        try:
            self.client.report_progress(event)
        except JellyfinError as e:
            self.reports_failed += 1
            logger.warning(f"Failed to send status update: {e}")
        else:
            self.reports_sent += 1
            logger.info(f"Status updated: {event.event_name}, Position: {sample.position_seconds:.1f}s ({event.position_ticks} ticks)")
        return True

    def run(self):
        """
        Main monitoring loop.

        Returns:
            str: EXIT_PLAYER_CLOSED when the player went away, EXIT_CANCELLED when stopped.
        """
        self.running = True
        logger.info(f"Waiting {self.warmup_delay}s for PotPlayer to initialize")
        try:
            if self.cancel_event.wait(self.warmup_delay):
                logger.info("Monitoring cancelled before the first probe")
                return EXIT_CANCELLED

            self.start_time_ticks = get_start_time_ticks()
            logger.info(f"Monitoring item {self.item_id}, reporting interval: {self.reporting_interval}s")

            while not self.cancel_event.wait(self.reporting_interval):
                if not self.tick():
                    return EXIT_PLAYER_CLOSED

            logger.info("Monitoring cancelled")
            return EXIT_CANCELLED
        finally:
            self.running = False
            logger.info(f"Monitor stopped ({self.reports_sent} reports sent, {self.reports_failed} failed)")
