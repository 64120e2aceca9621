"""
Custom Exception Hierarchy
Provides consistent error handling across the application
"""

from typing import Optional, Dict, Any


class AppException(Exception):
    """Base exception for all application errors"""

    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class DatabaseError(AppException):
    """Database-related errors"""
    pass


class ConfigurationError(AppException):
    """Configuration-related errors"""
    pass


class ValidationError(AppException):
    """Data validation errors"""
    status_code = 400


class UploadError(AppException):
    """File upload errors"""
    status_code = 400


class NotFoundError(AppException):
    """Requested client, location or transaction does not exist"""
    status_code = 404


class ParseError(UploadError):
    """File could not be read, or lacks a required column"""
    pass


class RowValidationError(ValidationError):
    """A single input row is unusable (missing natural key, bad date)"""
    pass


class DirectoryNotInitializedError(ConfigurationError):
    """Identity resolution attempted without a loaded location directory"""
    pass


class UnmappedSentinelError(ConfigurationError):
    """Client has no Unmapped Locations bucket and one could not be created"""
    pass


class BatchUpsertError(DatabaseError):
    """A batch write failed; earlier batches stay committed"""

    def __init__(self, message: str, batch_index: int, batch_size: int = 0,
                 rows_committed: int = 0, details: Optional[Dict[str, Any]] = None):
        self.batch_index = batch_index
        self.batch_size = batch_size
        self.rows_committed = rows_committed
        merged = {
            "batch_index": batch_index,
            "batch_size": batch_size,
            "rows_committed": rows_committed,
        }
        merged.update(details or {})
        super().__init__(message, merged)


def to_http_exception(exc: AppException):
    """Translate an application error into the HTTPException a controller raises"""
    from fastapi import HTTPException

    detail = {"message": exc.message, **exc.details} if exc.details else exc.message
    return HTTPException(status_code=exc.status_code, detail=detail)
