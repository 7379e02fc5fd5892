# tests/test_jellyfin_api.py
import pytest
import requests
from unittest.mock import MagicMock

from jellypot_bridge.jellyfin_api import (
    JellyfinClient,
    ClientIdentity,
    MediaItemRef,
    ProgressEvent,
    AuthenticationError,
    ItemLookupError,
    ReportError,
)

# --- Constants ---
SERVER_URL = "http://jellyfin.local:8096"
TEST_USERNAME = "alice"
TEST_PASSWORD = "secret"
TEST_DEVICE_ID = "device-123"
TEST_VERSION = "1.0.0"
AUTH_URL = f"{SERVER_URL}/Users/AuthenticateByName"
PROGRESS_URL = f"{SERVER_URL}/Sessions/Playing/Progress"

UNAUTH_HEADER = (
    'MediaBrowser Client="JellyPot", Device="PotPlayer", '
    'DeviceId="device-123", Version="1.0.0"'
)


def make_response(status_code=200, json_data=None, json_error=None):
    response = MagicMock()
    response.status_code = status_code
    if json_error is not None:
        response.json.side_effect = json_error
    else:
        response.json.return_value = json_data
    return response


def auth_response(token="T1"):
    return make_response(200, {
        "AccessToken": token,
        "SessionInfo": {"Id": "session-1", "UserId": "user-1"},
    })


def make_event(ticks=50_000_000, event_name="timeupdate"):
    return ProgressEvent(
        position_ticks=ticks,
        playback_start_time_ticks=16_000_000_000_000_000,
        item_id="ABC123",
        event_name=event_name,
    )


# --- Fixtures ---

@pytest.fixture
def mock_requests(mocker):
    """Fixture to mock requests.get and requests.post."""
    mock_get = mocker.patch('requests.get')
    mock_post = mocker.patch('requests.post')
    return mock_get, mock_post


@pytest.fixture
def client():
    identity = ClientIdentity(device_id=TEST_DEVICE_ID, version=TEST_VERSION)
    return JellyfinClient(SERVER_URL + "/", TEST_USERNAME, TEST_PASSWORD, identity)


# --- Authorization header ---

def test_header_unauthenticated(client):
    assert client._authorization_header() == UNAUTH_HEADER


def test_header_authenticated(client):
    client.state.access_token = "T1"
    assert client._authorization_header() == (
        'MediaBrowser Token="T1", Client="JellyPot", Device="PotPlayer", '
        'DeviceId="device-123", Version="1.0.0"'
    )


# --- authenticate ---

def test_authenticate_success(client, mock_requests):
    _, mock_post = mock_requests
    mock_post.return_value = auth_response("T1")

    state = client.authenticate()

    mock_post.assert_called_once_with(
        AUTH_URL,
        headers={'Authorization': UNAUTH_HEADER, 'Content-Type': 'application/json'},
        json={'Username': TEST_USERNAME, 'Pw': TEST_PASSWORD},
        timeout=10,
    )
    assert state.access_token == "T1"
    assert state.session_id == "session-1"
    assert state.user_id == "user-1"
    assert client.is_authenticated


@pytest.mark.parametrize("status_code", [400, 401, 403, 500])
def test_authenticate_rejected(client, mock_requests, status_code):
    _, mock_post = mock_requests
    mock_post.return_value = make_response(status_code)

    with pytest.raises(AuthenticationError):
        client.authenticate()
    assert not client.is_authenticated


def test_authenticate_malformed_body(client, mock_requests):
    _, mock_post = mock_requests
    mock_post.return_value = make_response(200, json_error=ValueError("Expecting value"))

    with pytest.raises(AuthenticationError):
        client.authenticate()
    assert not client.is_authenticated


def test_authenticate_missing_token(client, mock_requests):
    _, mock_post = mock_requests
    mock_post.return_value = make_response(200, {"SessionInfo": {"Id": "s", "UserId": "u"}})

    with pytest.raises(AuthenticationError):
        client.authenticate()
    assert not client.is_authenticated


@pytest.mark.parametrize("body", [
    {"AccessToken": "T1", "SessionInfo": "oops"},
    {"AccessToken": "T1", "SessionInfo": ["s", "u"]},
    {"AccessToken": "T1"},
    {"AccessToken": "T1", "SessionInfo": {"Id": "s"}},
    {"AccessToken": "T1", "SessionInfo": {"Id": "s", "UserId": ""}},
])
def test_authenticate_unusable_session_info(client, mock_requests, body):
    _, mock_post = mock_requests
    mock_post.return_value = make_response(200, body)

    with pytest.raises(AuthenticationError):
        client.authenticate()
    assert not client.is_authenticated
    assert client.state.user_id is None


def test_authenticate_network_error(client, mock_requests):
    _, mock_post = mock_requests
    mock_post.side_effect = requests.exceptions.ConnectionError("refused")

    with pytest.raises(AuthenticationError):
        client.authenticate()


def test_failed_reauthentication_drops_old_token(client, mock_requests):
    _, mock_post = mock_requests
    client.state.access_token = "OLD"
    mock_post.return_value = make_response(401)

    with pytest.raises(AuthenticationError):
        client.authenticate()
    assert client.access_token is None


# --- get_item ---

ITEM_JSON = {
    "Id": "ABC123",
    "Name": "Big Buck Bunny",
    "Type": "Movie",
    "UserData": {"PlaybackPositionTicks": 1_200_000_000, "ItemId": "ABC123"},
}


def test_get_item_success(client, mock_requests):
    mock_get, _ = mock_requests
    client.state.access_token = "T1"
    client.state.user_id = "user-1"
    mock_get.return_value = make_response(200, ITEM_JSON)

    item = client.get_item("ABC123")

    url = mock_get.call_args.args[0]
    assert url == f"{SERVER_URL}/Users/user-1/Items/ABC123"
    assert mock_get.call_args.kwargs["headers"]["Authorization"].startswith('MediaBrowser Token="T1", Client=')
    assert mock_get.call_args.kwargs["timeout"] == 10
    assert item == MediaItemRef("ABC123", "Big Buck Bunny", "Movie", 1_200_000_000)


def test_get_item_without_user_data(client, mock_requests):
    mock_get, _ = mock_requests
    client.state.access_token = "T1"
    mock_get.return_value = make_response(200, {"Id": "X", "Name": "Clip", "Type": "Video"})

    item = client.get_item("X")
    assert item.playback_position_ticks == 0


def test_get_item_authenticates_lazily(client, mock_requests):
    mock_get, mock_post = mock_requests
    mock_post.return_value = auth_response("T1")
    mock_get.return_value = make_response(200, ITEM_JSON)

    client.get_item("ABC123")

    mock_post.assert_called_once()
    assert mock_get.call_args.args[0] == f"{SERVER_URL}/Users/user-1/Items/ABC123"


@pytest.mark.parametrize("status_code", [401, 404, 500])
def test_get_item_error_status(client, mock_requests, status_code):
    mock_get, _ = mock_requests
    client.state.access_token = "T1"
    mock_get.return_value = make_response(status_code)

    with pytest.raises(ItemLookupError):
        client.get_item("ABC123")
    assert client.access_token == "T1"


def test_get_item_decode_failure_clears_token(client, mock_requests):
    mock_get, _ = mock_requests
    client.state.access_token = "T1"
    mock_get.return_value = make_response(200, json_error=ValueError("garbage"))

    with pytest.raises(ItemLookupError):
        client.get_item("ABC123")
    assert client.access_token is None


def test_get_item_unexpected_shape_clears_token(client, mock_requests):
    mock_get, _ = mock_requests
    client.state.access_token = "T1"
    mock_get.return_value = make_response(200, ["not", "an", "item"])

    with pytest.raises(ItemLookupError):
        client.get_item("ABC123")
    assert client.access_token is None


@pytest.mark.parametrize("user_data", [["bad"], "bad", 42])
def test_get_item_malformed_user_data_clears_token(client, mock_requests, user_data):
    mock_get, _ = mock_requests
    client.state.access_token = "T1"
    mock_get.return_value = make_response(200, {"Id": "X", "Name": "Clip", "UserData": user_data})

    with pytest.raises(ItemLookupError):
        client.get_item("X")
    assert client.access_token is None


# --- report_progress ---

def test_progress_payload():
    assert make_event().to_payload() == {
        "PositionTicks": 50_000_000,
        "PlaybackStartTimeTicks": 16_000_000_000_000_000,
        "PlayMethod": "DirectPlay",
        "MediaSourceId": "ABC123",
        "CanSeek": True,
        "ItemId": "ABC123",
        "EventName": "timeupdate",
    }


@pytest.mark.parametrize("status_code", [200, 204])
def test_report_progress_success(client, mock_requests, status_code):
    _, mock_post = mock_requests
    client.state.access_token = "T1"
    mock_post.return_value = make_response(status_code)

    assert client.report_progress(make_event()) is True
    mock_post.assert_called_once()
    assert mock_post.call_args.args[0] == PROGRESS_URL
    assert mock_post.call_args.kwargs["json"] == make_event().to_payload()
    assert client.access_token == "T1"


def test_report_progress_authenticates_exactly_once_first(client, mock_requests):
    _, mock_post = mock_requests
    mock_post.side_effect = [auth_response("T1"), make_response(204)]

    client.report_progress(make_event())

    urls = [c.args[0] for c in mock_post.call_args_list]
    assert urls == [AUTH_URL, PROGRESS_URL]
    assert mock_post.call_args_list[1].kwargs["headers"]["Authorization"].startswith('MediaBrowser Token="T1"')


def test_report_progress_failure_forces_reauth_on_next_call(client, mock_requests):
    _, mock_post = mock_requests
    client.state.access_token = "T1"
    mock_post.side_effect = [make_response(401), auth_response("T2"), make_response(204)]

    with pytest.raises(ReportError):
        client.report_progress(make_event())
    assert client.access_token is None
    # No retry inside the failing call
    assert mock_post.call_count == 1

    assert client.report_progress(make_event()) is True
    urls = [c.args[0] for c in mock_post.call_args_list]
    assert urls == [PROGRESS_URL, AUTH_URL, PROGRESS_URL]
    assert client.access_token == "T2"


def test_report_progress_auth_failure_propagates(client, mock_requests):
    _, mock_post = mock_requests
    mock_post.return_value = make_response(401)

    with pytest.raises(AuthenticationError):
        client.report_progress(make_event())
    assert [c.args[0] for c in mock_post.call_args_list] == [AUTH_URL]


def test_report_progress_network_error_keeps_token(client, mock_requests):
    _, mock_post = mock_requests
    client.state.access_token = "T1"
    mock_post.side_effect = requests.exceptions.Timeout("timed out")

    with pytest.raises(ReportError):
        client.report_progress(make_event())
    assert client.access_token == "T1"


def test_playback_url(client):
    client.state.access_token = "T1"
    assert client.playback_url("ABC123") == f"{SERVER_URL}/Items/ABC123/Download?api_key=T1"


def test_report_progress_with_malformed_reauth_body(client, mock_requests):
    _, mock_post = mock_requests
    mock_post.return_value = make_response(200, {"AccessToken": "T1", "SessionInfo": "oops"})

    with pytest.raises(AuthenticationError):
        client.report_progress(make_event())
    assert client.access_token is None
