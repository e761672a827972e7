"""
Services Package

Business logic modules for the recipe site.
"""

from .errors import (
    HttpError,
    ValidationError,
    UpstreamError,
    AuthError,
    ForbiddenError,
    NotFoundError,
    ConflictError,
    ServiceUnavailableError,
)

from .search import (
    Unfiltered,
    Exact,
    Fuzzy,
    Empty,
    SearchPage,
    SearchTarget,
    DatabaseFuzzySearch,
    ProcedureNotFound,
    search_records,
    parse_pagination,
    parse_status,
    total_pages,
    build_pagination,
)

from .audit import write_audit_log

__all__ = [
    # Errors
    'HttpError',
    'ValidationError',
    'UpstreamError',
    'AuthError',
    'ForbiddenError',
    'NotFoundError',
    'ConflictError',
    'ServiceUnavailableError',
    # Search
    'Unfiltered',
    'Exact',
    'Fuzzy',
    'Empty',
    'SearchPage',
    'SearchTarget',
    'DatabaseFuzzySearch',
    'ProcedureNotFound',
    'search_records',
    'parse_pagination',
    'parse_status',
    'total_pages',
    'build_pagination',
    # Audit
    'write_audit_log',
]
