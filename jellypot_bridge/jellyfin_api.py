"""
Jellyfin API client for JellyPot Bridge.

Keeps the session state (access token, session id, user id) for one user and
exposes the three server calls the bridge needs: authenticate, fetch an item
and report playback progress. A missing token triggers authentication before
the next call; a rejected progress report drops the token so the following
report authenticates again.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import requests

from jellypot_bridge.utils.constants import (
    CLIENT_NAME,
    DEVICE_NAME,
    HTTP_TIMEOUT,
    PLAY_METHOD_DIRECT,
)

logger = logging.getLogger(__name__)


class JellyfinError(Exception):
    """Base class for Jellyfin API errors."""
    pass


class AuthenticationError(JellyfinError):
    pass


class ItemLookupError(JellyfinError):
    pass


class ReportError(JellyfinError):
    pass


@dataclass(frozen=True)
class ClientIdentity:
    """How the bridge identifies itself in the Authorization header."""
    device_id: str
    version: str
    client: str = CLIENT_NAME
    device: str = DEVICE_NAME


@dataclass
class SessionState:
    access_token: Optional[str] = None
    session_id: Optional[str] = None
    user_id: Optional[str] = None

    @property
    def authenticated(self):
        return bool(self.access_token)


@dataclass(frozen=True)
class MediaItemRef:
    id: str
    name: str
    type: str
    playback_position_ticks: int = 0

    @classmethod
    def from_json(cls, data):
        """Builds an item from a /Users/{userId}/Items/{itemId} response body."""
        if not isinstance(data, dict) or not data.get("Id"):
            raise ValueError(f"Unexpected item response format: {data!r}")
        user_data = data.get("UserData") or {}
        if not isinstance(user_data, dict):
            raise ValueError(f"Unexpected UserData format: {user_data!r}")
        return cls(
            id=data["Id"],
            name=data.get("Name", ""),
            type=data.get("Type", ""),
            playback_position_ticks=int(user_data.get("PlaybackPositionTicks") or 0),
        )


@dataclass(frozen=True)
class ProgressEvent:
    position_ticks: int
    playback_start_time_ticks: int
    item_id: str
    event_name: str
    media_source_id: Optional[str] = None
    play_method: str = PLAY_METHOD_DIRECT
    can_seek: bool = True

    def to_payload(self):
        return {
            "PositionTicks": self.position_ticks,
            "PlaybackStartTimeTicks": self.playback_start_time_ticks,
            "PlayMethod": self.play_method,
            "MediaSourceId": self.media_source_id or self.item_id,
            "CanSeek": self.can_seek,
            "ItemId": self.item_id,
            "EventName": self.event_name,
        }


class JellyfinClient:
    """Session-holding client for a single Jellyfin user."""

    def __init__(self, server_url, username, password, identity, timeout=HTTP_TIMEOUT):
        self.server_url = server_url.rstrip("/")
        self.username = username
        self.password = password
        self.identity = identity
        self.timeout = timeout
        self.state = SessionState()

    @property
    def is_authenticated(self):
        return self.state.authenticated

    @property
    def access_token(self):
        return self.state.access_token

    def invalidate_token(self):
        """Forget the access token so the next call authenticates again."""
        if self.state.access_token:
            logger.info("Discarding cached Jellyfin access token")
        self.state.access_token = None

    def _authorization_header(self):
        ident = self.identity
        fields = (
            f'Client="{ident.client}", Device="{ident.device}", '
            f'DeviceId="{ident.device_id}", Version="{ident.version}"'
        )
        if self.state.access_token:
            return f'MediaBrowser Token="{self.state.access_token}", {fields}'
        return f"MediaBrowser {fields}"

    def _headers(self, json_body=False):
        headers = {'Authorization': self._authorization_header()}
        if json_body:
            headers['Content-Type'] = 'application/json'
        return headers

    def _ensure_authenticated(self):
        if not self.state.access_token:
            logger.info("No cached Jellyfin access token, authenticating")
            self.authenticate()

    def authenticate(self):
        """
        Log in with the configured username and password.

        Returns:
            SessionState: The updated session state.

        Raises:
            AuthenticationError: On network errors, a non-200 response or an unusable body.
        """
        url = f"{self.server_url}/Users/AuthenticateByName"
        body = {'Username': self.username, 'Pw': self.password}
        logger.info(f"Authenticating with Jellyfin at {self.server_url} as '{self.username}'")
        try:
            response = requests.post(url, headers=self._headers(json_body=True), json=body, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            self.state.access_token = None
            raise AuthenticationError(f"Failed to send auth request: {e}") from e

        if response.status_code != 200:
            self.state.access_token = None
            raise AuthenticationError(f"Authentication failed with status code: {response.status_code}")

        try:
            data = response.json()
            token = data["AccessToken"]
            session_info = data["SessionInfo"]
            if not isinstance(session_info, dict):
                raise TypeError(f"SessionInfo is not an object: {session_info!r}")
            session_id = session_info.get("Id")
            user_id = session_info.get("UserId")
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            self.state.access_token = None
            raise AuthenticationError(f"Failed to parse auth response: {e}") from e

        if not token or not user_id:
            self.state.access_token = None
            raise AuthenticationError("Auth response did not contain an access token and user id")

        self.state.access_token = token
        self.state.session_id = session_id
        self.state.user_id = user_id
        logger.info(f"Jellyfin authentication successful (user id: {self.state.user_id})")
        return self.state

    def get_item(self, item_id):
        """
        Fetch a media item for the authenticated user.

        Raises:
            AuthenticationError: If a lazy login was needed and failed.
            ItemLookupError: On network errors, a non-2xx response or an unusable body.
        """
        self._ensure_authenticated()
        url = f"{self.server_url}/Users/{self.state.user_id}/Items/{item_id}"
        try:
            response = requests.get(url, headers=self._headers(), timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise ItemLookupError(f"Failed to send item request: {e}") from e

        if not 200 <= response.status_code < 300:
            raise ItemLookupError(f"Get item failed with status code: {response.status_code}")

        try:
            item = MediaItemRef.from_json(response.json())
        except (ValueError, TypeError) as e:
            # A garbled body may come from a session the server no longer accepts
            self.invalidate_token()
            raise ItemLookupError(f"Failed to parse item response: {e}") from e

        logger.info(f"Retrieved item '{item.name}' (Type: {item.type}, resume at {item.playback_position_ticks} ticks)")
        return item

    def report_progress(self, event):
        """
        Send a playback progress event.

        There is no retry within this call: a rejected report clears the token and
        the caller's next report authenticates again.

        Returns:
            bool: True when the server accepted the event.

        Raises:
            AuthenticationError: If a lazy login was needed and failed.
            ReportError: On network errors or a status other than 200/204.
        """
        self._ensure_authenticated()
        url = f"{self.server_url}/Sessions/Playing/Progress"
        try:
            response = requests.post(url, headers=self._headers(json_body=True), json=event.to_payload(), timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise ReportError(f"Failed to send playback status: {e}") from e

        if response.status_code not in (200, 204):
            self.invalidate_token()
            raise ReportError(f"Update playback status failed with code: {response.status_code}")

        return True

    def playback_url(self, item_id):
        """Direct download URL for an item, authorized through the api_key parameter."""
        return f"{self.server_url}/Items/{item_id}/Download?api_key={self.state.access_token}"
