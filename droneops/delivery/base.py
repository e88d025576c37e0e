"""Publisher interface shared by delivery backends."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Protocol

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

_UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9._ -]+")


@dataclass(frozen=True)
class PublishedLinks:
    """Retrievable URLs for one published report pair."""

    word_url: str
    excel_url: str


class Publisher(Protocol):
    """Publishes both generated documents or fails as a whole."""

    def publish(
        self, word_bytes: bytes, excel_bytes: bytes, word_name: str, excel_name: str
    ) -> PublishedLinks:
        """Store both documents and return their URLs; raise StorageError on failure."""


def safe_file_name(name: str, suffix: str, fallback: str = "report") -> str:
    """Reduce a user-supplied name to a safe base name ending in ``suffix``."""

    base = name.replace("\\", "/").rsplit("/", maxsplit=1)[-1]
    base = _UNSAFE_CHARS_RE.sub("_", base).strip(" .")
    if base.lower().endswith(suffix.lower()):
        base = base[: -len(suffix)].rstrip(" .")
    return f"{base or fallback}{suffix}"
