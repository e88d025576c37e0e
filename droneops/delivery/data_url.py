"""Inline delivery: documents returned as base64 data URLs."""

from __future__ import annotations

import base64

from droneops.delivery.base import DOCX_MIME, XLSX_MIME, PublishedLinks


class DataUrlPublisher:
    """Embed both documents in the returned URLs; nothing is stored."""

    def publish(
        self, word_bytes: bytes, excel_bytes: bytes, word_name: str, excel_name: str
    ) -> PublishedLinks:
        return PublishedLinks(
            word_url=to_data_url(word_bytes, DOCX_MIME),
            excel_url=to_data_url(excel_bytes, XLSX_MIME),
        )


def to_data_url(payload: bytes, mime_type: str) -> str:
    encoded = base64.b64encode(payload).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"
