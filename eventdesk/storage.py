"""File area for uploaded ticket designs and generated QR images.

Everything lives under one static root and is referenced by URL path
(``/uploads/...``, ``/tickets/...``) so the same string works as a link.
"""

import logging
import os
import re
import time
from dataclasses import dataclass
from typing import Optional

from eventdesk.errors import Result

logger = logging.getLogger(__name__)

UPLOADS_DIR = "uploads"
TICKETS_DIR = "tickets"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass(frozen=True)
class Upload:
    """An uploaded file as received from the client."""

    filename: str
    content: bytes
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class StoredArtifact:
    url: str
    filename: str
    size: int
    mime_type: Optional[str]


def safe_filename(name: str) -> str:
    """Strip directories and anything that is not a plain filename character."""
    base = os.path.basename(name.replace("\\", "/"))
    cleaned = _UNSAFE_CHARS.sub("-", base).strip(".-")
    return cleaned or "upload"


class ArtifactStore:
    def __init__(self, root: str) -> None:
        self.root = os.path.abspath(root)

    def ensure_dirs(self) -> None:
        for sub in (UPLOADS_DIR, TICKETS_DIR):
            os.makedirs(os.path.join(self.root, sub), exist_ok=True)

    def path_for(self, url: str) -> str:
        """Map a stored URL path back to its location on disk."""
        relative = os.path.normpath(url.lstrip("/"))
        full = os.path.join(self.root, relative)
        if os.path.commonpath([self.root, os.path.abspath(full)]) != self.root:
            raise ValueError(f"Artifact path escapes the static root: {url}")
        return full

    def write(self, subdir: str, filename: str, content: bytes, mime_type: Optional[str] = None) -> StoredArtifact:
        directory = os.path.join(self.root, subdir)
        os.makedirs(directory, exist_ok=True)
        with open(os.path.join(directory, filename), "wb") as fh:
            fh.write(content)
        return StoredArtifact(
            url=f"/{subdir}/{filename}",
            filename=filename,
            size=len(content),
            mime_type=mime_type,
        )

    def save_design(self, upload: Upload) -> StoredArtifact:
        filename = f"ticket-{int(time.time() * 1000)}-{safe_filename(upload.filename)}"
        return self.write(UPLOADS_DIR, filename, upload.content, upload.content_type)

    def save_qr(self, token: str, png: bytes) -> StoredArtifact:
        return self.write(TICKETS_DIR, f"qr_{token}.png", png, "image/png")

    def delete(self, url: str) -> Result:
        """Best-effort removal. Never raises."""
        try:
            os.remove(self.path_for(url))
        except (OSError, ValueError) as exc:
            return Result.failure(exc, f"could not delete {url}: {exc}")
        return Result.success(f"deleted {url}")


def log_result(result: Result, what: str) -> None:
    if result.ok:
        logger.debug("%s: %s", what, result.detail)
    else:
        logger.warning("%s failed: %s", what, result.detail)
