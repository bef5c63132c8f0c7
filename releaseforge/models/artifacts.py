"""Artifact model — one file on local disk, identified by path and content hash."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict

from releaseforge.core.hasher import sha256_file


class Artifact(BaseModel):
    """A packaged installer on durable local storage.

    Signing and stapling mutate the file in place, so a fresh ``Artifact``
    must be taken with :meth:`from_path` after every mutation.  The
    ``sha256`` is what idempotency and ledger entries refer to.
    """

    model_config = ConfigDict(frozen=True)

    path: Path
    sha256: str
    size_bytes: int

    @classmethod
    def from_path(cls, path: Path) -> Artifact:
        path = Path(path)
        return cls(path=path, sha256=sha256_file(path), size_bytes=path.stat().st_size)

    @property
    def filename(self) -> str:
        return self.path.name

    def read_bytes(self) -> bytes:
        return self.path.read_bytes()


class ReleaseKey(BaseModel):
    """Destination key for a published artifact: ``(tag, platform, filename)``."""

    model_config = ConfigDict(frozen=True)

    tag: str
    platform: str
    filename: str

    def as_tuple(self) -> tuple[str, str, str]:
        return (self.tag, self.platform, self.filename)

    def __str__(self) -> str:
        return f"{self.tag}/{self.platform}/{self.filename}"
