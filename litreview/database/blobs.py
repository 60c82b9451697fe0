"""Session-scoped ``blob:`` references to in-memory binary content."""

import uuid
from typing import Optional


class BlobRegistry:
    """Holds bytes behind ``blob:<uuid>`` references until they are revoked.

    A reference stays valid for the lifetime of the registry (usually the
    process).  Whoever creates a reference owns it and must call
    :meth:`revoke` once it is no longer displayed, or the bytes stay alive.
    """

    PREFIX = "blob:"

    def __init__(self):
        self._entries: dict[str, tuple[bytes, str]] = {}

    def create(self, data: bytes, mime: str = "application/pdf") -> str:
        url = f"{self.PREFIX}{uuid.uuid4()}"
        self._entries[url] = (bytes(data), mime)
        return url

    def resolve(self, url: str) -> Optional[bytes]:
        entry = self._entries.get(url)
        return entry[0] if entry else None

    def mime(self, url: str) -> Optional[str]:
        entry = self._entries.get(url)
        return entry[1] if entry else None

    def revoke(self, url: str) -> bool:
        """Release *url*; returns False when it was unknown or already revoked."""
        return self._entries.pop(url, None) is not None

    def revoke_all(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        return count

    @classmethod
    def is_blob_url(cls, url: Optional[str]) -> bool:
        return bool(url) and url.startswith(cls.PREFIX)

    def __contains__(self, url: object) -> bool:
        return url in self._entries

    def __len__(self) -> int:
        return len(self._entries)
