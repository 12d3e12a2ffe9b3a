"""Probe a cloud drive's filename censor through fabricated instant uploads."""

from .client import ProbeClient, ProbeOutcome, Verdict, classify_upload_response, build_upload_signature
from .checker import NameChecker, BulkSummary, DEFAULT_INTERVAL
from .workspace import ProbeWorkspace
from .store import SessionStore
from .hashes import fabricate_hash
from .errors import NameProbeError

__all__ = [
    "ProbeClient",
    "ProbeOutcome",
    "Verdict",
    "classify_upload_response",
    "build_upload_signature",
    "NameChecker",
    "BulkSummary",
    "DEFAULT_INTERVAL",
    "ProbeWorkspace",
    "SessionStore",
    "fabricate_hash",
    "NameProbeError",
]
