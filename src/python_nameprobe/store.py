"""On-disk cache of the authenticated session."""

import json
import logging
import os
import sys
from typing import Optional

from .client import ProbeClient

logger = logging.getLogger(__name__)

CACHE_FILENAME = ".COOKIES_115.cache"
CACHE_ENV_VAR = "NAMEPROBE_CACHE"


def default_cache_path() -> str:
    """``$NAMEPROBE_CACHE`` if set, else the cache file next to the running executable."""
    override = os.getenv(CACHE_ENV_VAR)
    if override:
        return override
    exe_dir = os.path.dirname(os.path.abspath(sys.argv[0] or "."))
    return os.path.join(exe_dir, CACHE_FILENAME)


class SessionStore:
    """Loads and saves ``{"cookies", "user_id", "user_key"}`` as JSON at ``path``."""

    def __init__(self, path: Optional[str] = None):
        self.path = path or default_cache_path()

    def exists(self) -> bool:
        return os.path.exists(self.path)

    def load(self, **client_kwargs) -> Optional[ProbeClient]:
        """Restore the cached session.

        :param client_kwargs: Extra keyword arguments for :class:`ProbeClient`.
        :return: Client, or ``None`` if there is no cache or it cannot be parsed.
        """
        if not self.exists():
            return None
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("session record is not an object")
            return ProbeClient.from_dict(data, **client_kwargs)
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable session cache %s: %s", self.path, e)
            return None

    def save(self, client: ProbeClient) -> None:
        """Replace the cache file with the client's current fields."""
        if self.exists():
            os.remove(self.path)
        with open(self.path, 'x', encoding='utf-8') as f:
            json.dump(client.to_dict(), f)
        logger.debug("Saved session to %s", self.path)

    def set_cookies(self, cookies: str, **client_kwargs) -> ProbeClient:
        """Start a session from ``cookies``, derive its keys and persist it.

        :raises KeyFetchFailed: The keys could not be derived; nothing is written.
        """
        client = ProbeClient(cookies, **client_kwargs)
        client.derive_keys_if_absent()
        self.save(client)
        return client

    def clear(self) -> bool:
        """Delete the cache file.

        :return: ``True`` if a file was removed.
        """
        if not self.exists():
            return False
        os.remove(self.path)
        return True
