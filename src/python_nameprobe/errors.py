"""Exception hierarchy for python-nameprobe.

Every error raised by the client, the workspace and the checker derives from
:class:`NameProbeError`, so callers can catch the whole family at once.
"""

from typing import Optional

NAME_FORBIDDEN_STATUSCODE = 414
DIR_EXISTS_ERRNO = 20004


class NameProbeError(Exception):
    """Base exception for all name probing failures."""


# ----------------------- Authentication -----------------------
class AuthError(NameProbeError):
    pass


class KeyFetchFailed(AuthError):
    """User id / user key could not be derived from the cookie."""


# ----------------------- Probe upload -----------------------
class UploadError(NameProbeError):
    pass


class MissingUserId(UploadError):
    def __init__(self):
        super().__init__("missing userid")


class MissingUserKey(UploadError):
    def __init__(self):
        super().__init__("missing userkey")


class RequestError(UploadError):
    """Transport failure or unreadable response body."""

    def __init__(self, message: str = "network request error"):
        super().__init__(message)


class NameForbidden(UploadError):
    def __init__(self, filename: Optional[str] = None):
        self.filename = filename
        super().__init__("name not allowed by provider, filename may contain a word in the censor list")


class UploadFailed(UploadError):
    """Any other rejection. ``message`` is the decoded provider status message."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(f"error: {message}")


# ----------------------- Folders -----------------------
class FolderError(NameProbeError):
    pass


class AlreadyExists(FolderError):
    def __init__(self, name: Optional[str] = None):
        self.name = name
        super().__init__("create folder failed, dir already exist")


class CreateFailed(FolderError):
    def __init__(self, message: str = "create dir failed"):
        super().__init__(message)


class MalformedId(FolderError):
    def __init__(self, raw):
        self.raw = raw
        super().__init__(f"provider returned an invalid folder id: {raw!r}")


# ----------------------- Deletion -----------------------
class DeleteError(NameProbeError):
    pass


class DeleteFailed(DeleteError):
    def __init__(self, message: str = "delete failed"):
        super().__init__(message)


# ----------------------- Checks -----------------------
class CheckError(NameProbeError):
    pass


class UnknownCheckError(CheckError):
    def __init__(self, reason: str = ""):
        self.reason = reason
        super().__init__(f"check fails: {reason}" if reason else "check fails")


class SinkWriteFailed(CheckError):
    pass


class CredentialsUnset(CheckError):
    def __init__(self):
        super().__init__("cookies not set")

