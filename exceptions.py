"""Custom exception classes for balloon mapper errors."""

from __future__ import annotations


class BalloonMapperException(Exception):
    """Base exception for balloon mapper errors."""
    pass


class ValidationError(BalloonMapperException):
    """Raised when page dimensions or placement input are invalid."""
    pass


class PersistenceError(BalloonMapperException):
    """Raised when the annotation batch cannot be written."""
    pass


class PDFValidationError(BalloonMapperException):
    """Raised when PDF path validation fails."""
    pass


class PDFReadError(BalloonMapperException):
    """Raised when PDF cannot be opened or its text cannot be extracted."""
    pass


class PDFDecryptionError(BalloonMapperException):
    """Raised when PDF decryption fails."""
    pass


class PDFAnnotationError(BalloonMapperException):
    """Raised when highlight rendering fails."""
    pass


class UploadError(BalloonMapperException):
    """Raised when the object store rejects an upload."""
    pass


class JSONExportError(BalloonMapperException):
    """Raised when JSON export fails."""
    pass


class BalloonNotFoundError(BalloonMapperException):
    """Raised when a balloon or characteristic id is unknown."""
    pass


class DuplicateBalloonError(BalloonMapperException):
    """Raised when a characteristic already has a balloon."""
    pass
