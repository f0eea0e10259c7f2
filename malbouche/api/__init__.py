"""Backend REST API package."""

from .api_client import (
    ApiClient,
    ApiError,
    ApiConnectionError,
    ApiTimeoutError,
    ApiResponseError,
    AuthTokenMissingError,
    TokenProvider,
)
from .conflict_client import (
    ConflictAwareClient,
    ConflictInfo,
    ErrorInfo,
    EventOperationResult,
    classify_conflict,
    describe_error,
)

__all__ = [
    'ApiClient',
    'ApiError',
    'ApiConnectionError',
    'ApiTimeoutError',
    'ApiResponseError',
    'AuthTokenMissingError',
    'TokenProvider',
    'ConflictAwareClient',
    'ConflictInfo',
    'ErrorInfo',
    'EventOperationResult',
    'classify_conflict',
    'describe_error',
]
