"""Custom exceptions for core logic."""

from __future__ import annotations


class NoValidFieldsError(Exception):
    """Raised when no field has both a non-blank label and a non-blank value."""

    def __init__(self, message: str = "no field has both a label and a value") -> None:
        super().__init__(message)


class EncodingFailedError(Exception):
    """Raised when the codec rejects the serialized payload."""

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class NothingToDownloadError(Exception):
    """Raised when a download is requested before any image was generated."""

    def __init__(self, message: str = "no generated image to download") -> None:
        super().__init__(message)


class FieldIndexError(IndexError):
    """Raised when a field index does not address an existing field."""

    def __init__(self, index: int, size: int) -> None:
        super().__init__(f"field index {index} out of range for {size} field(s)")
        self.index = index
        self.size = size


class LastFieldError(ValueError):
    """Raised when removing the only remaining field."""

    def __init__(self) -> None:
        super().__init__("the last remaining field cannot be removed")
