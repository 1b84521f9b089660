"""Filesystem store for proof-of-completion PDFs.

Layout:
  <upload_dir>/proof-files/<random hex>.pdf

Stored files are referenced from `Task.proof_file` by their public path
(`/uploads/proof-files/<name>`). Reads are only served to participants of the
owning task (see `can_read`).
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
import secrets
import tempfile
from dataclasses import dataclass
from pathlib import Path

from fastapi import UploadFile

from .auth import AuthUser
from .config import settings
from .errors import ValidationError

logger = logging.getLogger(__name__)

PUBLIC_PREFIX = "/uploads/proof-files/"
PDF_CONTENT_TYPES = {"application/pdf"}
PDF_MAGIC = b"%PDF-"
_NAME_RE = re.compile(r"^[0-9a-f]{32}\.pdf$")
_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class StoredProof:
    name: str
    path: Path
    size_bytes: int

    @property
    def reference(self) -> str:
        return f"{PUBLIC_PREFIX}{self.name}"


class ProofStore:
    def __init__(self, root_dir: str | Path | None = None, max_bytes: int | None = None):
        self._root_dir = Path(root_dir) if root_dir is not None else None
        self._max_bytes = max_bytes

    @property
    def root_dir(self) -> Path:
        return self._root_dir or settings.proof_files_dir

    @property
    def max_bytes(self) -> int:
        return self._max_bytes if self._max_bytes is not None else settings.max_proof_file_bytes

    def path_for_name(self, name: str) -> Path | None:
        """Resolve a stored file name; None for anything that is not ours."""
        if not _NAME_RE.match(name or ""):
            return None
        return self.root_dir / name

    async def save_upload(self, upload: UploadFile) -> StoredProof:
        """Validate and persist an uploaded PDF."""
        content_type = (upload.content_type or "").split(";", 1)[0].strip().lower()
        if content_type not in PDF_CONTENT_TYPES:
            raise ValidationError("Only PDF files are allowed")

        chunks: list[bytes] = []
        size = 0
        while True:
            chunk = await upload.read(_CHUNK_SIZE)
            if not chunk:
                break
            size += len(chunk)
            if size > self.max_bytes:
                raise ValidationError("Proof file is too large")
            chunks.append(chunk)

        data = b"".join(chunks)
        if not data.startswith(PDF_MAGIC):
            raise ValidationError("Only PDF files are allowed")

        name = f"{secrets.token_hex(16)}.pdf"
        dest = self.root_dir / name
        await asyncio.to_thread(self._write_atomic, dest, data)
        logger.info("Stored proof file %s (%d bytes)", name, size)
        return StoredProof(name=name, path=dest, size_bytes=size)

    def discard(self, stored: StoredProof) -> None:
        try:
            stored.path.unlink()
        except FileNotFoundError:
            pass

    @staticmethod
    def _write_atomic(dest: Path, data: bytes) -> None:
        dest.parent.mkdir(parents=True, exist_ok=True)
        fd = None
        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(prefix=f"{dest.name}.tmp.", dir=str(dest.parent))
            with os.fdopen(fd, "wb") as f:
                fd = None
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, dest)
            tmp_path = None
        finally:
            if fd is not None:
                os.close(fd)
            if tmp_path is not None:
                try:
                    os.unlink(tmp_path)
                except FileNotFoundError:
                    pass


def can_read(user: AuthUser, task) -> bool:
    """Admins and the task's own participants may read its proof."""
    if user.is_admin:
        return True
    return user.id in {task.assigned_to, task.assigned_by, task.submitted_by}


proof_store = ProofStore()
