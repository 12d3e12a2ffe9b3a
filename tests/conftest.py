"""Test configuration and shared fixtures."""
from collections import defaultdict, deque

import pytest

from python_nameprobe.client import (
    ProbeClient,
    INFO_URL,
    UPLOAD_URL,
    CREATE_DIR_URL,
    DELETE_URL,
    LIST_URL,
)

USER_ID = "311402"
USER_KEY = "A1B2C3D4E5F6"
COOKIES = "UID=311402_A1_1600000000; CID=abc; SEID=def"
WORKSPACE_ID = 2468013579

UPLOAD_OK = {"statuscode": 0, "statusmsg": "", "status": 2}
UPLOAD_FORBIDDEN = {"statuscode": 414, "statusmsg": "\\u6587\\u4ef6\\u540d\\u4e0d\\u5408\\u6cd5"}


class FakeResponse:
    """Minimal stand-in for ``requests.Response``."""

    def __init__(self, body=None, status_code=200, text=None, url=""):
        self._body = body
        self.status_code = status_code
        self.text = text if text is not None else repr(body)
        self.url = url

    def json(self):
        if isinstance(self._body, (dict, list)):
            return self._body
        raise ValueError("No JSON object could be decoded")


class FakeHttp:
    """Scripted ``requests.Session`` replacement.

    Replies are queued per (method, url); the last queued reply repeats. A reply is a
    JSON body (dict), a :class:`FakeResponse` or an exception instance to raise.
    """

    def __init__(self):
        self.routes = defaultdict(deque)
        self.calls = []

    def on(self, method, url, *replies):
        self.routes[(method, url)].extend(replies)
        return self

    def request(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        queue = self.routes.get((method, url))
        if not queue:
            raise AssertionError(f"unexpected request {method} {url}")
        reply = queue.popleft() if len(queue) > 1 else queue[0]
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, FakeResponse):
            reply.url = url
            return reply
        return FakeResponse(reply, url=url)

    def calls_to(self, url):
        return [c for c in self.calls if c["url"] == url]


@pytest.fixture
def http():
    return FakeHttp()


@pytest.fixture
def client(http):
    """Client with keys already derived."""
    return ProbeClient(COOKIES, user_id=USER_ID, user_key=USER_KEY, http=http)


@pytest.fixture
def provider(http):
    """Fake provider with working key fetch, folder creation and deletion."""
    http.on("GET", INFO_URL, {"state": True, "user_id": int(USER_ID), "userkey": USER_KEY})
    http.on("POST", CREATE_DIR_URL, {"state": True, "errno": "", "cid": str(WORKSPACE_ID), "cname": "TMP_nameprobe"})
    http.on("POST", DELETE_URL, {"state": True, "error": "", "errno": ""})
    return http


def form(call):
    """Request form fields of a recorded call as a dict."""
    return dict(call["data"])


def params(call):
    return dict(call["params"])


