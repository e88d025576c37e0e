"""Custom exceptions for report generation."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from droneops.templates.models import ParseResult


class ReportError(Exception):
    """Base class for failures that abort one report generation attempt."""


class TemplateNotFound(ReportError):
    """Raised when a template resource is missing or cannot be loaded."""

    def __init__(self, message: str, *, template_name: str) -> None:
        super().__init__(message)
        self.template_name = template_name


class TemplateSyntaxError(ReportError):
    """Raised when a Word template contains a malformed placeholder."""

    def __init__(
        self,
        message: str,
        *,
        tag: str,
        context: str,
        result: ParseResult | None = None,
    ) -> None:
        super().__init__(f"{message}: {tag!r} in {context!r}")
        self.tag = tag
        self.context = context
        self.result = result


class SheetNotFound(ReportError):
    """Raised when the spreadsheet template lacks the target worksheet."""

    def __init__(self, message: str, *, sheet_name: str) -> None:
        super().__init__(message)
        self.sheet_name = sheet_name


class ValidationGap(ReportError):
    """Raised when required record fields are missing at mapping time."""

    def __init__(self, message: str, *, missing_fields: list[str]) -> None:
        super().__init__(f"{message}: {', '.join(missing_fields)}")
        self.missing_fields = missing_fields


class StorageError(ReportError):
    """Raised when publishing generated documents fails."""


class InvalidImage(ReportError):
    """Raised when an image payload cannot be decoded as a raster image."""

    def __init__(self, message: str, *, placeholder: str | None = None) -> None:
        super().__init__(message)
        self.placeholder = placeholder
