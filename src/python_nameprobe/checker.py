import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, TextIO

from .client import ProbeClient, ProbeOutcome, ROOT_FOLDER_ID
from .errors import UnknownCheckError, SinkWriteFailed, MissingUserId, MissingUserKey, NameProbeError
from .hashes import fabricate_hash, PROBE_FILE_SIZE
from .workspace import ProbeWorkspace, WORKSPACE_NAME

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 1.0  # seconds between two probes of a bulk run

ResultCallback = Callable[[str, ProbeOutcome], None]


@dataclass
class BulkSummary:
    """Per-verdict counters of a bulk run."""
    valid: int = 0
    forbidden: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.valid + self.forbidden + self.failed


class NameChecker:
    """Checks candidate filenames against the provider's censor.

    Each run opens one scratch workspace, probes every name into it strictly in order and
    deletes the workspace once at the end, however the probes went.
    """

    def __init__(self, client: ProbeClient, interval: float = DEFAULT_INTERVAL,
                 workspace_name: str = WORKSPACE_NAME, parent_id: int = ROOT_FOLDER_ID,
                 hash_factory: Callable[[], str] = fabricate_hash,
                 sleep: Callable[[float], None] = time.sleep):
        """Initialize checker.

        :param client: Authenticated client; keys are derived on first use if missing.
        :param interval: Default delay in seconds between probes of a bulk run.
        :param workspace_name: Name of the scratch folder.
        :param parent_id: Folder the scratch folder is created in.
        :param hash_factory: Source of fabricated content hashes.
        :param sleep: Blocking delay function.
        """
        if interval < 0:
            raise ValueError("interval must be non-negative")
        self.client = client
        self.interval = interval
        self.workspace_name = workspace_name
        self.parent_id = parent_id
        self.hash_factory = hash_factory
        self.sleep = sleep

    # ----------------------- Internal Helpers -----------------------
    def _open_workspace(self):
        self.client.derive_keys_if_absent()
        workspace = ProbeWorkspace(self.client, name=self.workspace_name, parent_id=self.parent_id)
        return workspace, workspace.open()

    def _probe(self, name: str, folder_id: int) -> ProbeOutcome:
        digest = self.hash_factory()
        try:
            return self.client.probe(name, PROBE_FILE_SIZE, digest, digest, folder_id)
        except (MissingUserId, MissingUserKey):
            raise
        except NameProbeError as e:
            # one broken probe must not end the run
            logger.warning("Error while probing %r: %s", name, e)
            return ProbeOutcome.failed(f"{type(e).__name__}: {e}")

    @staticmethod
    def _write(sink: Optional[TextIO], name: str) -> None:
        if sink is None:
            return
        try:
            sink.write(name + "\n")
            sink.flush()
        except OSError as e:
            raise SinkWriteFailed(f"cannot write {name!r} to output: {e}") from e

    # ----------------------- Public API -----------------------
    def check_one(self, name: str) -> bool:
        """Check a single name.

        :return: ``True`` if the name passes the censor, ``False`` if it is forbidden.
        :raises UnknownCheckError: The probe ended in neither verdict.
        :raises FolderError: The scratch folder could not be created.
        """
        workspace, folder_id = self._open_workspace()
        try:
            outcome = self._probe(name, folder_id)
        finally:
            workspace.close()
        if outcome.is_valid:
            return True
        if outcome.is_forbidden:
            return False
        raise UnknownCheckError(outcome.reason or "")

    def check_many(self, names: Iterable[str], forbidden_sink: Optional[TextIO] = None,
                   failure_sink: Optional[TextIO] = None, interval: Optional[float] = None,
                   on_result: Optional[ResultCallback] = None) -> BulkSummary:
        """Check every name of ``names`` in order inside one shared workspace.

        Forbidden names go to ``forbidden_sink``, names whose check failed to
        ``failure_sink``, one per line. Blank lines are skipped.

        :param names: Candidate names; trailing newlines are stripped.
        :param forbidden_sink: Optional writable text stream.
        :param failure_sink: Optional writable text stream.
        :param interval: Delay between probes, defaults to the checker's interval.
        :param on_result: Called with ``(name, outcome)`` after each probe.
        :return: Verdict counters.
        :raises SinkWriteFailed: Writing to a sink failed; the run stops.
        :raises FolderError: The scratch folder could not be created.
        """
        delay = self.interval if interval is None else interval
        if delay < 0:
            raise ValueError("interval must be non-negative")
        summary = BulkSummary()

        workspace, folder_id = self._open_workspace()
        try:
            first = True
            for line in names:
                name = line.rstrip("\r\n")
                if not name.strip():
                    continue
                if not first:
                    self.sleep(delay)
                first = False

                outcome = self._probe(name, folder_id)
                if outcome.is_valid:
                    summary.valid += 1
                    logger.info("checked %s", name)
                elif outcome.is_forbidden:
                    summary.forbidden += 1
                    logger.info("NAME NOT ALLOW: %s", name)
                    self._write(forbidden_sink, name)
                else:
                    summary.failed += 1
                    logger.info("failed to check: %s, cause by: %s", name, outcome.reason)
                    self._write(failure_sink, name)
                if on_result is not None:
                    on_result(name, outcome)
        finally:
            workspace.close()

        logger.info("Checked %d names: %d valid, %d forbidden, %d failed",
                    summary.total, summary.valid, summary.forbidden, summary.failed)
        return summary
