"""Scratch folder holding the artifacts of a probe run."""

import logging
from typing import Optional

from .client import ProbeClient, ROOT_FOLDER_ID
from .errors import AlreadyExists, CreateFailed, NameProbeError

logger = logging.getLogger(__name__)

WORKSPACE_NAME = "TMP_nameprobe"


class ProbeWorkspace:
    """One ephemeral folder under the root, opened once and deleted once.

    Usable as a context manager; ``close`` runs on exit whatever happened inside
    the block and never raises.
    """

    def __init__(self, client: ProbeClient, name: str = WORKSPACE_NAME, parent_id: int = ROOT_FOLDER_ID):
        self.client = client
        self.name = name
        self.parent_id = parent_id
        self.folder_id: Optional[int] = None

    @property
    def is_open(self) -> bool:
        return self.folder_id is not None

    def open(self) -> int:
        """Create the scratch folder, reusing it when it already exists.

        :return: Folder id to probe into.
        :raises FolderError: Creation failed for any reason other than "already exists".
        """
        if self.folder_id is not None:
            return self.folder_id
        try:
            self.folder_id = self.client.create_folder(self.parent_id, self.name)
        except AlreadyExists:
            existing = self.client.find_folder(self.parent_id, self.name)
            if existing is None:
                raise CreateFailed(f"folder {self.name!r} reported as existing but was not found")
            logger.info("Reusing existing workspace folder %r (%d)", self.name, existing)
            self.folder_id = existing
        else:
            logger.debug("Opened workspace folder %r (%d)", self.name, self.folder_id)
        return self.folder_id

    def close(self) -> bool:
        """Delete the scratch folder. Failures are logged, never raised.

        :return: ``True`` if the folder was deleted.
        """
        if self.folder_id is None:
            return False
        folder_id, self.folder_id = self.folder_id, None
        try:
            self.client.delete_node(self.parent_id, folder_id)
        except NameProbeError as e:
            logger.warning("fail to delete the folder %s (%d): %s", self.name, folder_id, e)
            return False
        logger.debug("Deleted workspace folder %r (%d)", self.name, folder_id)
        return True

    def __enter__(self) -> int:
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
