"""Publish reports into a folder served as static files."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
import time
import uuid
from pathlib import Path
from urllib.parse import quote

from droneops.delivery.base import PublishedLinks
from droneops.utils.errors import StorageError

logger = logging.getLogger("droneops.delivery")


class LocalDiskPublisher:
    """Write both documents into a fresh per-request folder under ``root``.

    URLs have the form ``{url_prefix}/{folder}/{file name}``.
    """

    def __init__(self, root: Path, url_prefix: str = "/output") -> None:
        self.root = root
        self.url_prefix = url_prefix.rstrip("/")

    def publish(
        self, word_bytes: bytes, excel_bytes: bytes, word_name: str, excel_name: str
    ) -> PublishedLinks:
        folder_name = f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"
        folder = self.root / folder_name

        try:
            folder.mkdir(parents=True, exist_ok=False)
            _atomic_write_bytes(folder / word_name, word_bytes)
            _atomic_write_bytes(folder / excel_name, excel_bytes)
        except OSError as exc:
            shutil.rmtree(folder, ignore_errors=True)
            raise StorageError(f"Could not save reports to disk: {exc}") from exc

        logger.info("published reports to %s", folder)
        return PublishedLinks(
            word_url=self._url(folder_name, word_name),
            excel_url=self._url(folder_name, excel_name),
        )

    def resolve(self, folder_name: str, file_name: str) -> Path | None:
        """Return the path of a published file, or None for unknown/unsafe names."""

        for part in (folder_name, file_name):
            if not part or part in {".", ".."} or "/" in part or "\\" in part:
                return None
        path = self.root / folder_name / file_name
        return path if path.is_file() else None

    def _url(self, folder_name: str, file_name: str) -> str:
        return f"{self.url_prefix}/{folder_name}/{quote(file_name)}"


def _atomic_write_bytes(path: Path, payload: bytes) -> None:
    fd, raw_tmp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=f"{path.name}.",
        suffix=".tmp",
    )
    os.close(fd)
    tmp_path = Path(raw_tmp_path)

    try:
        tmp_path.write_bytes(payload)
        tmp_path.replace(path)
    except Exception:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)
        raise
