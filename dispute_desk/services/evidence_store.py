"""Evidence storage adapter."""

import re
from pathlib import Path

from pydantic import BaseModel, Field

from dispute_desk.config import settings
from dispute_desk.errors import StorageError


class EvidenceFile(BaseModel):
    """An uploaded file as received from a party."""

    name: str = Field(min_length=1, description="Original file name")
    content_type: str = Field(default="application/octet-stream", description="MIME type")
    data: bytes = Field(description="File contents")

    @property
    def size(self) -> int:
        return len(self.data)


class StoredObject(BaseModel):
    """Where a stored file ended up."""

    url: str = Field(description="Public URL of the stored file")
    size: int = Field(description="Stored size in bytes")


class EvidenceStore:
    """Persists evidence bytes and hands back a descriptor."""

    def store(
        self,
        data: bytes,
        content_type: str,
        suggested_name: str,
        path_hint: str,
    ) -> StoredObject:
        raise NotImplementedError


def _safe_name(name: str) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9._-]+", "_", Path(name).name).strip("._")
    return cleaned or "evidence"


class LocalEvidenceStore(EvidenceStore):
    """Writes evidence under a local directory and serves it from a URL prefix."""

    def __init__(self, root: Path | None = None, base_url: str | None = None):
        self.root = root or settings.evidence_dir
        self.base_url = (base_url or settings.evidence.base_url).rstrip("/")

    def store(
        self,
        data: bytes,
        content_type: str,
        suggested_name: str,
        path_hint: str,
    ) -> StoredObject:
        """Write ``data`` to ``<root>/<path_hint>/<suggested_name>``.

        Raises:
            StorageError: If the file could not be written
        """
        parts = [_safe_name(p) for p in path_hint.split("/") if p]
        relative = Path(*parts, _safe_name(suggested_name))
        target = self.root / relative
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            raise StorageError(f"Failed to store evidence {suggested_name}: {e}") from e
        return StoredObject(url=f"{self.base_url}/{relative.as_posix()}", size=len(data))
