"""
Ordered pool of API credentials with a rotation cursor.
"""

from typing import Iterable, List, Optional

from ..config import ConfigManager
from ..errors import ConfigurationError


def parse_credentials(value: Optional[str]) -> List[str]:
    """Split a comma-separated list, trimming entries and dropping blanks and duplicates."""
    credentials: List[str] = []
    for item in (value or "").split(","):
        item = item.strip()
        if item and item not in credentials:
            credentials.append(item)
    return credentials


class CredentialPool:
    """
    Holds credentials and the index of the one currently in use.

    The pool is a passive cursor holder: only ResilientExecutor moves the
    cursor, under the lock of its ExecutorState.
    """

    def __init__(self, credentials: Iterable[str]):
        self._credentials = tuple(parse_credentials(",".join(credentials)))
        if not self._credentials:
            raise ConfigurationError(
                "No API credentials configured. Set API_KEY to one or more comma-separated keys."
            )
        self._index = 0

    @classmethod
    def from_string(cls, value: Optional[str]) -> "CredentialPool":
        return cls(parse_credentials(value))

    @classmethod
    def from_config(cls, override: Optional[str] = None) -> "CredentialPool":
        """Build the pool from the API_KEY setting (override > env > default)."""
        return cls.from_string(ConfigManager.get("API_KEY", override))

    @property
    def index(self) -> int:
        return self._index

    def size(self) -> int:
        return len(self._credentials)

    def __len__(self) -> int:
        return len(self._credentials)

    def current(self) -> str:
        return self._credentials[self._index]

    def rotate(self) -> int:
        """Advance the cursor to the next credential (wrapping) and return the new index."""
        self._index = (self._index + 1) % len(self._credentials)
        return self._index

    def __repr__(self) -> str:
        return f"CredentialPool(size={len(self._credentials)}, index={self._index})"
