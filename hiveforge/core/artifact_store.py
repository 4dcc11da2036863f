"""Content-addressed, immutable artifact store.

Storage layout: {base_path}/{sha256[0:2]}/{sha256[2:4]}/{sha256}-{name}.json
No delete method — artifacts are immutable once stored.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from hiveforge.core.errors import ArtifactIntegrityError
from hiveforge.core.hasher import sha256_hex
from hiveforge.models.artifacts import BuildArtifactRef

logger = logging.getLogger(__name__)

_UNSAFE_NAME = re.compile(r"[^A-Za-z0-9._+-]")


class ContentAddressedStore:
    """SHA-256 keyed, immutable artifact store.

    Every artifact is stored under its SHA-256 digest. Storing the same
    content twice is a no-op (idempotent). There is no update or delete.

    Parameters
    ----------
    base_path:
        Root directory for artifact storage.
    """

    def __init__(self, base_path: Path) -> None:
        self._base = Path(base_path)
        self._base.mkdir(parents=True, exist_ok=True)

    @property
    def base_path(self) -> Path:
        return self._base

    @staticmethod
    def _extract_digest(content_address: str) -> str:
        """Strip the ``sha256:`` prefix from a content address, if present."""
        return content_address.removeprefix("sha256:")

    def _artifact_dir(self, sha256_digest: str) -> Path:
        return self._base / sha256_digest[:2] / sha256_digest[2:4]

    def _artifact_path(self, sha256_digest: str, name: str) -> Path:
        """Compute the storage path for a SHA-256 digest and artifact name."""
        safe = _UNSAFE_NAME.sub("_", name) or "artifact"
        return self._artifact_dir(sha256_digest) / f"{sha256_digest}-{safe}.json"

    def _find(self, sha256_digest: str) -> Path | None:
        directory = self._artifact_dir(sha256_digest)
        if not directory.is_dir():
            return None
        for candidate in sorted(directory.glob(f"{sha256_digest}-*.json")):
            return candidate
        return None

    # ------------------------------------------------------------------
    # Store
    # ------------------------------------------------------------------

    def store(self, data: bytes, *, name: str) -> BuildArtifactRef:
        """Store data and return a reference to it.

        If the same content was already stored under *name*, verifies its
        integrity and returns the existing artifact without overwriting.
        """
        digest = sha256_hex(data)
        path = self._artifact_path(digest, name)

        if path.exists():
            if sha256_hex(path.read_bytes()) != digest:
                raise ArtifactIntegrityError(
                    f"Existing artifact at {path} failed integrity check"
                )
            logger.debug("Artifact %s already stored", path.name)
        else:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

        return BuildArtifactRef(
            name=name,
            content_address=f"sha256:{digest}",
            path=str(path),
            size_bytes=len(data),
        )

    # ------------------------------------------------------------------
    # Retrieve
    # ------------------------------------------------------------------

    def retrieve(self, content_address: str) -> bytes:
        """Retrieve artifact bytes by content address.

        Parameters
        ----------
        content_address:
            Either "sha256:<hex>" or just the hex digest.
        """
        path = self._find(self._extract_digest(content_address))
        if path is None:
            raise FileNotFoundError(f"Artifact not found: {content_address}")
        return path.read_bytes()

    # ------------------------------------------------------------------
    # Check and verify
    # ------------------------------------------------------------------

    def exists(self, content_address: str) -> bool:
        """Check if an artifact exists in the store."""
        return self._find(self._extract_digest(content_address)) is not None

    def verify(self, content_address: str) -> bool:
        """Re-hash stored data and compare against the content address."""
        digest = self._extract_digest(content_address)
        path = self._find(digest)
        if path is None:
            return False
        return sha256_hex(path.read_bytes()) == digest
