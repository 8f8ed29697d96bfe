"""
POS HTTP API - Public API
=========================
"""

from core.http_api.contracts import HttpApiErrorBody, HttpApiResponse
from core.http_api.errors import (
    error_response,
    map_rejection_reason,
    rejection_response,
    rejection_status,
    success_response,
)

__all__ = [
    "HttpApiErrorBody",
    "HttpApiResponse",
    "error_response",
    "map_rejection_reason",
    "rejection_response",
    "rejection_status",
    "success_response",
]
