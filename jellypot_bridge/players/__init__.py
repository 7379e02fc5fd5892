from .potplayer import (
    PlayerProbe,
    PlaybackSample,
    PlayerTransport,
    Win32PlayerTransport,
    ProbeError,
    TransportError,
    get_event_name,
)

__all__ = [
    'PlayerProbe',
    'PlaybackSample',
    'PlayerTransport',
    'Win32PlayerTransport',
    'ProbeError',
    'TransportError',
    'get_event_name',
]
