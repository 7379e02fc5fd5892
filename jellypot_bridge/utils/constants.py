"""
Constants shared across the JellyPot Bridge modules.
"""

APP_NAME = "jellypot-bridge"
CLIENT_NAME = "JellyPot"
DEVICE_NAME = "PotPlayer"
PROTOCOL_NAME = "jellypot"
PROTOCOL_PREFIX = f"{PROTOCOL_NAME}://"

# PotPlayer window messages (sent as WM_USER with the command in wParam)
WM_USER = 0x0400
POT_GET_CURRENT_TIME = 0x5004
POT_GET_PLAY_STATUS = 0x5006

# Window class names, in lookup order
POTPLAYER_CLASS_NAMES = (
    "PotPlayer64",      # 64-bit default
    "PotPlayer",        # 32-bit default
    "PotPlayerMini64",  # 64-bit mini mode
    "PotPlayerMini",    # 32-bit mini mode
)

# Jellyfin positions are expressed in 100ns ticks
TICKS_PER_MILLISECOND = 10000
TICKS_PER_SECOND = TICKS_PER_MILLISECOND * 1000

# Playback event names reported to Jellyfin
TIMEUPDATE = "timeupdate"
PAUSE = "pause"
STOP = "stop"
UNKNOWN = "unknown"

PLAY_METHOD_DIRECT = "DirectPlay"

# Timing defaults (seconds)
DEFAULT_REPORTING_INTERVAL = 10
PLAYER_WARMUP_DELAY = 3
HTTP_TIMEOUT = 10
SEND_MESSAGE_TIMEOUT_MS = 2000
TAKEOVER_GRACE_PERIOD = 0.5

# Single-instance rendezvous channel
INSTANCE_CHANNEL_NAME = "JellyPotBridge_39AC4C3F"
EXIT_COMMAND = "EXIT"
MAX_COMMAND_BYTES = 4096
