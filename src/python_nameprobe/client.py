import hashlib
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Dict, Any, Iterable, Tuple, Type
from urllib.parse import unquote

import requests

from .errors import (
    NAME_FORBIDDEN_STATUSCODE,
    DIR_EXISTS_ERRNO,
    NameProbeError,
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

logger = logging.getLogger(__name__)

# Provider endpoints
INFO_URL = "https://proapi.115.com/app/uploadinfo"
UPLOAD_URL = "https://uplb.115.com/3.0/initupload.php"
CREATE_DIR_URL = "https://webapi.115.com/files/add"
DELETE_URL = "https://webapi.115.com/rb/delete"
LIST_URL = "https://webapi.115.com/files"

APP_VERSION = "29.0.0"
USER_AGENT_PREFIX = "Mozilla/5.0 115disk/"
TARGET_PREFIX = "U_1_"
SIGNATURE_SUFFIX = "000000"
UPLOAD_SUCCESS_STATUS = 2  # nested "status" of an accepted instant upload
ROOT_FOLDER_ID = 0
DEFAULT_TIMEOUT = 30
LIST_PAGE_SIZE = 1000


class Verdict(Enum):
    VALID = "valid"
    FORBIDDEN = "forbidden"
    FAILED = "failed"


@dataclass(frozen=True)
class ProbeOutcome:
    """Verdict of one probe upload. ``reason`` is only set for ``Verdict.FAILED``."""
    verdict: Verdict
    reason: Optional[str] = None

    @classmethod
    def valid(cls) -> "ProbeOutcome":
        return cls(Verdict.VALID)

    @classmethod
    def forbidden(cls) -> "ProbeOutcome":
        return cls(Verdict.FORBIDDEN)

    @classmethod
    def failed(cls, reason: str) -> "ProbeOutcome":
        return cls(Verdict.FAILED, reason)

    @property
    def is_valid(self) -> bool:
        return self.verdict is Verdict.VALID

    @property
    def is_forbidden(self) -> bool:
        return self.verdict is Verdict.FORBIDDEN

    @property
    def is_failed(self) -> bool:
        return self.verdict is Verdict.FAILED

    def as_error(self, filename: Optional[str] = None) -> Optional[NameProbeError]:
        """Exception equivalent of this outcome, ``None`` when valid."""
        if self.is_forbidden:
            return NameForbidden(filename)
        if self.is_failed:
            return UploadFailed(self.reason or "")
        return None


# ----------------------- Status message decoding -----------------------
_ESCAPE_RE = re.compile(
    r'\\u\{(?P<brace>[0-9a-fA-F]{1,6})\}'
    r'|\\u(?P<u4>[0-9a-fA-F]{4})'
    r'|%u(?P<pu4>[0-9a-fA-F]{4})'
    r'|\\x(?P<x2>[0-9a-fA-F]{2})'
    r'|(?P<pct>(?:%[0-9a-fA-F]{2})+)'
    r'|\\(?P<bad>[ux])'
    r'|\\(?P<char>.)'
    r'|(?P<tail>\\)\Z',
    re.DOTALL,
)

_SIMPLE_ESCAPES = {
    'n': '\n',
    't': '\t',
    'r': '\r',
    'b': '\b',
    'f': '\f',
    'v': '\v',
    '0': '\0',
}


def _replace_escape(match: "re.Match") -> str:
    for group in ('brace', 'u4', 'pu4', 'x2'):
        code = match.group(group)
        if code is not None:
            return chr(int(code, 16))
    if match.group('pct') is not None:
        return unquote(match.group('pct'), errors='strict')
    if match.group('bad') is not None:
        raise ValueError(f"truncated escape sequence at offset {match.start()}")
    if match.group('tail') is not None:
        raise ValueError("dangling backslash at end of message")
    char = match.group('char')
    return _SIMPLE_ESCAPES.get(char, char)


def js_unescape(text: str) -> str:
    """Decode JS-style (``\\uXXXX``, ``\\xXX``, ``\\n``) and percent (``%uXXXX``, ``%E4%B8%AD``)
    escapes into plain text.

    Surrogate pairs produced by consecutive ``\\uD8xx\\uDCxx`` escapes are joined.

    :param text: Raw status message as sent by the provider.
    :return: Decoded message.
    :raises ValueError: Malformed escape, invalid UTF-8 percent run or lone surrogate.
    """
    decoded = _ESCAPE_RE.sub(_replace_escape, text)
    return decoded.encode('utf-16', 'surrogatepass').decode('utf-16')


# ----------------------- Response classification -----------------------
def _as_int(value: Any) -> Optional[int]:
    # bool is an int subclass but never a valid status
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _status_message(body: Dict[str, Any]) -> str:
    raw = body.get("statusmsg")
    if raw is None:
        return ""
    return js_unescape(str(raw))


def classify_upload_response(body: Dict[str, Any]) -> ProbeOutcome:
    """Turn a parsed upload response into a :class:`ProbeOutcome`.

    - ``statuscode == 414``: the name was rejected by the content censor.
    - any other non-zero ``statuscode``: failure carrying the decoded ``statusmsg``.
    - ``statuscode == 0`` with nested ``status == 2``: the name passed.
    - ``statuscode == 0`` otherwise: failure, ``"not succ: " + statusmsg``.
    """
    statuscode = _as_int(body.get("statuscode"))
    if statuscode is None:
        return ProbeOutcome.failed(f"malformed response, no statuscode: {body!r}")
    if statuscode == NAME_FORBIDDEN_STATUSCODE:
        return ProbeOutcome.forbidden()

    try:
        message = _status_message(body)
    except ValueError as e:
        return ProbeOutcome.failed(f"js_utf8_decode failed: {e}")

    if statuscode != 0:
        return ProbeOutcome.failed(message)
    if _as_int(body.get("status")) == UPLOAD_SUCCESS_STATUS:
        return ProbeOutcome.valid()
    return ProbeOutcome.failed("not succ: " + message)


# ----------------------- Signing -----------------------
def sha1_hex(content: str) -> str:
    return hashlib.sha1(content.encode('utf-8')).hexdigest()


def build_upload_signature(user_id: str, user_key: str, file_id: str, target: str) -> str:
    """Two-stage SHA-1 signature required by the instant upload endpoint.

    :param user_id: Numeric user id as a string.
    :param user_key: Key returned by the upload info endpoint.
    :param file_id: Upper-cased total hash; doubles as the quick id.
    :param target: ``"U_1_" + folder id``.
    :return: Lowercase hex signature.
    """
    inner = sha1_hex(f"{user_id}{file_id}{file_id}{target}0")
    return sha1_hex(user_key + inner + SIGNATURE_SUFFIX)


def _parse_errno(value: Any) -> Optional[int]:
    """``errno`` arrives either as a string or an integer; normalize it once here."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _parse_id(value: Any) -> int:
    if isinstance(value, bool):
        raise MalformedId(value)
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        raise MalformedId(value)
    if parsed < 0:
        raise MalformedId(value)
    return parsed


class ProbeClient:
    """Authenticated session against the provider.

    Holds the cookie header and the lazily derived user id / user key, signs probe
    uploads and performs the folder operations needed for a scratch workspace.
    """

    def __init__(self, cookies: str, user_id: Optional[str] = None, user_key: Optional[str] = None,
                 app_version: str = APP_VERSION, timeout: float = DEFAULT_TIMEOUT,
                 http: Optional[requests.Session] = None):
        """Initialize client.

        :param cookies: Raw ``Cookie`` header value copied from a logged-in browser.
        :param user_id: Previously derived user id, if restored from cache.
        :param user_key: Previously derived user key, if restored from cache.
        :param app_version: App version token sent in the user agent and the upload query.
        :param timeout: Per-request timeout in seconds.
        :param http: Optional ``requests.Session``; a new one is created if omitted.
        """
        self.cookies = cookies
        self.user_id = user_id
        self.user_key = user_key
        self.app_version = app_version
        self.timeout = timeout
        self.user_agent = USER_AGENT_PREFIX + app_version
        self.http = http or requests.Session()

    def __repr__(self) -> str:
        return f"ProbeClient(user_id={self.user_id!r}, has_key={self.user_key is not None})"

    # ----------------------- Persistence -----------------------
    def to_dict(self) -> Dict[str, Optional[str]]:
        return {"cookies": self.cookies, "user_id": self.user_id, "user_key": self.user_key}

    @classmethod
    def from_dict(cls, data: Dict[str, Any], **kwargs) -> "ProbeClient":
        cookies = data.get("cookies")
        if not isinstance(cookies, str):
            raise ValueError("session record has no cookies")
        user_id = data.get("user_id")
        user_key = data.get("user_key")
        return cls(cookies,
                   user_id=str(user_id) if user_id is not None else None,
                   user_key=str(user_key) if user_key is not None else None,
                   **kwargs)

    # ----------------------- Internal Helpers -----------------------
    def _headers(self) -> Dict[str, str]:
        return {"Cookie": self.cookies, "User-Agent": self.user_agent}

    def _request(self, method: str, url: str, error_cls: Type[NameProbeError], **kwargs) -> Dict[str, Any]:
        """Send a request and return the JSON object body.

        Transport failures and unusable bodies are raised as ``error_cls``.
        """
        try:
            resp = self.http.request(method, url, headers=self._headers(), timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise error_cls(f"network request error: {e}") from e
        return self._handle_response(resp, error_cls)

    def _handle_response(self, resp: requests.Response, error_cls: Type[NameProbeError]) -> Dict[str, Any]:
        if resp.status_code >= 400:
            raise error_cls(f"HTTP {resp.status_code}: {resp.text[:200]}")
        try:
            body = resp.json()
        except ValueError as e:
            raise error_cls("Invalid JSON in response") from e
        if not isinstance(body, dict):
            raise error_cls("Expected JSON object in response")
        logger.debug("%s -> %r", resp.url, body)
        return body

    def _require_keys(self) -> Tuple[str, str]:
        if not self.user_id:
            raise MissingUserId()
        if not self.user_key:
            raise MissingUserKey()
        return self.user_id, self.user_key

    # ----------------------- Authentication -----------------------
    @property
    def has_keys(self) -> bool:
        return bool(self.user_id) and bool(self.user_key)

    def fetch_user_key(self) -> None:
        """Derive user id and user key from the cookie (GET upload info)."""
        body = self._request("GET", INFO_URL, KeyFetchFailed)
        user_id = body.get("user_id")
        user_key = body.get("userkey")
        if isinstance(user_id, bool) or not isinstance(user_id, (int, str)) or user_id == "":
            raise KeyFetchFailed(f"upload info response has no user_id: {body!r}")
        if not isinstance(user_key, str) or not user_key:
            raise KeyFetchFailed("upload info response has no userkey")
        self.user_id = str(user_id)
        self.user_key = user_key
        logger.info("Derived keys for user %s", self.user_id)

    def derive_keys_if_absent(self) -> None:
        """Fetch keys only when either one is missing; a no-op otherwise."""
        if not self.has_keys:
            self.fetch_user_key()

    # ----------------------- Probe upload -----------------------
    def _post_probe(self, filename: str, file_size: int, total_hash: str, block_hash: str, cid: int) -> Dict[str, Any]:
        user_id, user_key = self._require_keys()
        file_id = total_hash.upper()
        target = f"{TARGET_PREFIX}{cid}"
        sig = build_upload_signature(user_id, user_key, file_id, target)
        logger.debug("Signed probe for %r in %s: sig=%s", filename, target, sig)
        params = [
            ("isp", "0"),
            ("appid", "0"),
            ("appversion", self.app_version),
            ("format", "json"),
            ("sig", sig),
        ]
        form = [
            ("preid", block_hash),
            ("filename", filename),
            ("quickid", file_id),
            ("user_id", user_id),
            ("app_ver", self.app_version),
            ("filesize", str(file_size)),
            ("userid", user_id),
            ("exif", ""),
            ("target", target),
            ("fileid", file_id),
        ]
        return self._request("POST", UPLOAD_URL, RequestError, params=params, data=form)

    def probe(self, filename: str, file_size: int, total_hash: str, block_hash: str, cid: int) -> ProbeOutcome:
        """Probe-upload ``filename`` and classify the reply.

        Transport and decoding failures become a failed outcome. Missing keys still raise
        :class:`MissingUserId` / :class:`MissingUserKey`.
        """
        try:
            body = self._post_probe(filename, file_size, total_hash, block_hash, cid)
        except RequestError as e:
            return ProbeOutcome.failed(str(e))
        return classify_upload_response(body)

    def probe_upload(self, filename: str, file_size: int, total_hash: str, block_hash: str, cid: int) -> None:
        """Exception flavored :meth:`probe`.

        :raises NameForbidden: The censor rejected ``filename``.
        :raises UploadFailed: Any other provider side rejection.
        :raises RequestError: Transport failure or unreadable body.
        """
        body = self._post_probe(filename, file_size, total_hash, block_hash, cid)
        error = classify_upload_response(body).as_error(filename)
        if error is not None:
            raise error

    # ----------------------- Folders -----------------------
    def create_folder(self, parent_id: int, name: str) -> int:
        """Create folder ``name`` under ``parent_id`` and return its id.

        :raises AlreadyExists: errno 20004, a folder of that name is already there.
        :raises CreateFailed: Any other failure.
        :raises MalformedId: Success reported without a usable ``cid``.
        """
        body = self._request("POST", CREATE_DIR_URL, CreateFailed,
                             data=[("pid", str(parent_id)), ("cname", name)])
        if not body.get("state"):
            errno = _parse_errno(body.get("errno"))
            if errno == DIR_EXISTS_ERRNO:
                raise AlreadyExists(name)
            raise CreateFailed(f"create dir failed: errno={body.get('errno')!r} {body.get('error', '')}".rstrip())
        folder_id = _parse_id(body.get("cid"))
        logger.debug("Created folder %r (%d) under %d", name, folder_id, parent_id)
        return folder_id

    def find_folder(self, parent_id: int, name: str) -> Optional[int]:
        """Look up the id of the child folder ``name`` of ``parent_id``.

        :return: Folder id, or ``None`` if no such child folder exists.
        """
        offset = 0
        while True:
            params = [
                ("aid", "1"),
                ("cid", str(parent_id)),
                ("show_dir", "1"),
                ("offset", str(offset)),
                ("limit", str(LIST_PAGE_SIZE)),
                ("format", "json"),
            ]
            body = self._request("GET", LIST_URL, CreateFailed, params=params)
            if not body.get("state"):
                raise CreateFailed(f"listing folder {parent_id} failed: {body.get('error', '')}".rstrip())
            entries = body.get("data") or []
            for entry in entries:
                # files carry "fid"; folders only "cid"
                if isinstance(entry, dict) and "fid" not in entry and entry.get("n") == name:
                    return _parse_id(entry.get("cid"))
            offset += len(entries)
            total = _as_int(body.get("count")) or 0
            if not entries or offset >= total:
                return None

    def delete_nodes(self, parent_id: int, target_ids: Iterable[int]) -> None:
        """Delete several files or folders of ``parent_id`` in one request.

        :raises DeleteFailed: The provider reported ``state == false`` or the call failed.
        """
        form: List[Tuple[str, str]] = [("pid", str(parent_id)), ("ignore_warn", "1")]
        for i, target in enumerate(target_ids):
            form.append((f"fid[{i}]", str(target)))
        if len(form) == 2:
            raise DeleteFailed("no target ids given")
        body = self._request("POST", DELETE_URL, DeleteFailed, data=form)
        if not body.get("state"):
            raise DeleteFailed(f"delete failed: {body.get('error', '')}".rstrip())

    def delete_node(self, parent_id: int, target_id: int) -> None:
        self.delete_nodes(parent_id, [target_id])
