"""Tests for ProbeClient provider operations."""
import pytest
import requests

from python_nameprobe.client import (
    ProbeClient,
    INFO_URL,
    UPLOAD_URL,
    CREATE_DIR_URL,
    DELETE_URL,
    LIST_URL,
)
from python_nameprobe.errors import (
    KeyFetchFailed,
    MissingUserId,
    MissingUserKey,
    RequestError,
    NameForbidden,
    UploadFailed,
    AlreadyExists,
    CreateFailed,
    MalformedId,
    DeleteFailed,
)

from conftest import COOKIES, USER_ID, USER_KEY, UPLOAD_OK, UPLOAD_FORBIDDEN, FakeResponse, form

HASH = "ab" * 20


class TestKeyDerivation:
    def test_derive_populates_id_and_key(self, http):
        """Key fetch fills user id and user key from the cookie session."""
        http.on("GET", INFO_URL, {"user_id": 311402, "userkey": USER_KEY})
        client = ProbeClient(COOKIES, http=http)

        client.derive_keys_if_absent()

        assert client.user_id == USER_ID
        assert client.user_key == USER_KEY
        assert http.calls[0]["headers"]["Cookie"] == COOKIES

    def test_derive_is_idempotent(self, http):
        """Second call with keys set performs no request."""
        http.on("GET", INFO_URL, {"user_id": 311402, "userkey": USER_KEY})
        client = ProbeClient(COOKIES, http=http)

        client.derive_keys_if_absent()
        client.derive_keys_if_absent()

        assert len(http.calls_to(INFO_URL)) == 1

    def test_restored_keys_skip_fetch(self, client, http):
        """A session restored with both keys never fetches them."""
        client.derive_keys_if_absent()
        assert http.calls == []

    def test_half_populated_session_refetches(self, http):
        """A missing key alone triggers a fetch."""
        http.on("GET", INFO_URL, {"user_id": "311402", "userkey": USER_KEY})
        client = ProbeClient(COOKIES, user_id=USER_ID, http=http)

        client.derive_keys_if_absent()

        assert client.user_key == USER_KEY
        assert len(http.calls) == 1

    @pytest.mark.parametrize("reply", [
        requests.ConnectionError("down"),
        FakeResponse(None, text="<html>login</html>"),
        FakeResponse(None, status_code=502, text="bad gateway"),
        {"state": False, "error": "not logged in"},
        {"user_id": 1},
    ])
    def test_fetch_failures_raise_key_fetch_failed(self, http, reply):
        """Transport errors and unusable bodies raise KeyFetchFailed and leave keys unset."""
        http.on("GET", INFO_URL, reply)
        client = ProbeClient(COOKIES, http=http)

        with pytest.raises(KeyFetchFailed):
            client.derive_keys_if_absent()
        assert client.user_id is None


class TestProbe:
    def test_valid_probe_returns_none(self, client, http):
        """An accepted probe returns without raising."""
        http.on("POST", UPLOAD_URL, UPLOAD_OK)
        assert client.probe_upload("fine.txt", 5, HASH, HASH, 9) is None

    def test_forbidden_probe_raises(self, client, http):
        """Status 414 raises NameForbidden carrying the filename."""
        http.on("POST", UPLOAD_URL, UPLOAD_FORBIDDEN)
        with pytest.raises(NameForbidden) as exc_info:
            client.probe_upload("bad.txt", 5, HASH, HASH, 9)
        assert exc_info.value.filename == "bad.txt"

    def test_other_status_raises_upload_failed(self, client, http):
        """A non-success nested status raises UploadFailed."""
        http.on("POST", UPLOAD_URL, {"statuscode": 0, "statusmsg": "", "status": 1})
        with pytest.raises(UploadFailed, match="not succ"):
            client.probe_upload("x.txt", 5, HASH, HASH, 9)

    def test_transport_error_raises_request_error(self, client, http):
        """Transport exceptions are wrapped, with the original as cause."""
        http.on("POST", UPLOAD_URL, requests.Timeout("slow"))
        with pytest.raises(RequestError) as exc_info:
            client.probe_upload("x.txt", 5, HASH, HASH, 9)
        assert isinstance(exc_info.value.__cause__, requests.Timeout)

    def test_probe_turns_transport_error_into_failed_outcome(self, client, http):
        """probe() reports HTTP errors as a failed outcome."""
        http.on("POST", UPLOAD_URL, FakeResponse(None, status_code=500, text="oops"))
        outcome = client.probe("x.txt", 5, HASH, HASH, 9)
        assert outcome.is_failed
        assert "HTTP 500" in outcome.reason

    def test_missing_user_id(self, http):
        """Probing without a user id raises before any request."""
        client = ProbeClient(COOKIES, user_key=USER_KEY, http=http)
        with pytest.raises(MissingUserId):
            client.probe("x.txt", 5, HASH, HASH, 9)
        assert http.calls == []

    def test_missing_user_key(self, http):
        """Probing without a user key raises MissingUserKey."""
        client = ProbeClient(COOKIES, user_id=USER_ID, http=http)
        with pytest.raises(MissingUserKey):
            client.probe_upload("x.txt", 5, HASH, HASH, 9)


class TestCreateFolder:
    def test_returns_new_id(self, client, http):
        """Successful creation returns the parsed folder id."""
        http.on("POST", CREATE_DIR_URL, {"state": True, "errno": "", "cid": "123456"})

        assert client.create_folder(0, "TMP") == 123456
        assert form(http.calls[0]) == {"pid": "0", "cname": "TMP"}

    @pytest.mark.parametrize("errno", [20004, "20004"])
    def test_already_exists_for_string_or_int_errno(self, client, http, errno):
        """errno 20004 raises AlreadyExists whether sent as string or integer."""
        http.on("POST", CREATE_DIR_URL, {"state": False, "errno": errno, "error": "exists"})
        with pytest.raises(AlreadyExists):
            client.create_folder(0, "TMP")

    @pytest.mark.parametrize("errno", [990002, "990002", "", None])
    def test_other_failures_are_create_failed(self, client, http, errno):
        """Any other failed state raises CreateFailed."""
        http.on("POST", CREATE_DIR_URL, {"state": False, "errno": errno})
        with pytest.raises(CreateFailed):
            client.create_folder(0, "TMP")

    def test_already_exists_is_not_create_failed(self):
        """AlreadyExists is a distinct condition, not a generic failure."""
        assert not issubclass(AlreadyExists, CreateFailed)

    @pytest.mark.parametrize("cid", [None, "", "abc", "-4", True])
    def test_malformed_id(self, client, http, cid):
        """Success without a usable cid raises MalformedId."""
        body = {"state": True, "errno": ""}
        if cid is not None:
            body["cid"] = cid
        http.on("POST", CREATE_DIR_URL, body)
        with pytest.raises(MalformedId):
            client.create_folder(0, "TMP")

    def test_network_failure(self, client, http):
        """A transport error during creation raises CreateFailed."""
        http.on("POST", CREATE_DIR_URL, requests.ConnectionError("down"))
        with pytest.raises(CreateFailed):
            client.create_folder(0, "TMP")


class TestFindFolder:
    def test_finds_folder_by_name(self, client, http):
        """Only folder entries (no fid) with a matching name are returned."""
        http.on("GET", LIST_URL, {"state": True, "count": 3, "data": [
            {"cid": "10", "n": "docs"},
            {"fid": "11", "cid": "0", "n": "TMP"},
            {"cid": "12", "n": "TMP"},
        ]})
        assert client.find_folder(0, "TMP") == 12

    def test_pages_until_exhausted(self, client, http):
        """Listing continues page by page until count is reached."""
        http.on("GET", LIST_URL,
                {"state": True, "count": 2, "data": [{"cid": "10", "n": "docs"}]},
                {"state": True, "count": 2, "data": [{"cid": "12", "n": "music"}]})
        assert client.find_folder(0, "TMP") is None
        assert len(http.calls) == 2


class TestDelete:
    def test_delete_node(self, client, http):
        """Single delete sends pid, ignore_warn and fid[0]."""
        http.on("POST", DELETE_URL, {"state": True})

        client.delete_node(0, 77)

        assert form(http.calls[0]) == {"pid": "0", "ignore_warn": "1", "fid[0]": "77"}

    def test_delete_nodes_indexes_each_id(self, client, http):
        """Bulk delete sends each id under its own fid[i] field."""
        http.on("POST", DELETE_URL, {"state": True})

        client.delete_nodes(5, [7, 8, 9])

        fields = form(http.calls[0])
        assert fields["fid[0]"] == "7"
        assert fields["fid[1]"] == "8"
        assert fields["fid[2]"] == "9"
        assert fields["pid"] == "5"

    def test_state_false_is_delete_failed(self, client, http):
        """state false in the reply raises DeleteFailed."""
        http.on("POST", DELETE_URL, {"state": False, "error": "nope"})
        with pytest.raises(DeleteFailed):
            client.delete_node(0, 77)

    def test_empty_target_list(self, client, http):
        """Deleting nothing raises without sending a request."""
        with pytest.raises(DeleteFailed):
            client.delete_nodes(0, [])
        assert http.calls == []


def test_session_dict_round_trip_keeps_fields():
    """from_dict normalizes the user id to a string and keeps unset keys."""
    client = ProbeClient.from_dict({"cookies": COOKIES, "user_id": 311402, "user_key": None})
    assert client.to_dict() == {"cookies": COOKIES, "user_id": USER_ID, "user_key": None}
