"""Scratch storage for an upload that must not outlive its request."""

import base64
import os
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from starlette.datastructures import UploadFile

from src.utils.logger import get_logger

logger = get_logger(__name__)

CHUNK_SIZE = 1024 * 1024


class TemporaryUpload:
    """An uploaded image copied to a named scratch file."""

    def __init__(
        self,
        path: Path,
        content_type: str | None,
        filename: str | None,
        size_bytes: int,
    ):
        self.path = path
        self.content_type = content_type
        self.filename = filename
        self.size_bytes = size_bytes
        self._deleted = False

    @property
    def deleted(self) -> bool:
        return self._deleted

    def read_bytes(self) -> bytes:
        return self.path.read_bytes()

    def to_base64(self) -> str:
        return base64.b64encode(self.read_bytes()).decode("ascii")

    def data_uri(self, encoded: str | None = None) -> str:
        """Embed the image in a ``data:`` URI so the client can render it."""
        encoded = encoded if encoded is not None else self.to_base64()
        return f"data:{self.content_type};base64,{encoded}"

    def delete(self) -> None:
        """Remove the scratch file. Safe to call more than once."""
        if self._deleted:
            return
        self._deleted = True
        try:
            self.path.unlink(missing_ok=True)
            logger.info(f"Image deleted: {self.path.name}")
        except OSError as e:
            logger.warning(f"Could not delete temp file {self.path}: {e}")


async def _copy_to_scratch(
    upload: UploadFile, tmp_dir: str | None
) -> tuple[Path, int]:
    suffix = Path(upload.filename or "").suffix.lower()
    fd, name = tempfile.mkstemp(prefix="upload_", suffix=suffix, dir=tmp_dir)
    path = Path(name)
    size = 0
    try:
        with os.fdopen(fd, "wb") as scratch:
            while chunk := await upload.read(CHUNK_SIZE):
                scratch.write(chunk)
                size += len(chunk)
    except BaseException:
        path.unlink(missing_ok=True)
        raise
    return path, size


@asynccontextmanager
async def uploaded_file(
    upload: UploadFile, tmp_dir: str | None = None
) -> AsyncIterator[TemporaryUpload]:
    """Copy an upload to scratch storage and delete it on every exit path."""
    path, size = await _copy_to_scratch(upload, tmp_dir)
    handle = TemporaryUpload(
        path=path,
        content_type=upload.content_type,
        filename=upload.filename,
        size_bytes=size,
    )
    try:
        yield handle
    finally:
        handle.delete()
