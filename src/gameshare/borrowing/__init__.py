"""Borrow request module.

Provides functionality for:
- Requesting a game for a date range
- Owner approval and decline
- Overlap checks against approved requests
"""

from .manager import BorrowRequestManager
from .models import BorrowRequest
from .schemas import BorrowRequestCreate, BorrowRequestResponse, BorrowRequestStatus

__all__ = [
    "BorrowRequestManager",
    "BorrowRequest",
    "BorrowRequestCreate",
    "BorrowRequestResponse",
    "BorrowRequestStatus",
]
