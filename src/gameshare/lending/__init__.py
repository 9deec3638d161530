"""Lending record module.

Provides functionality for:
- Tracking loans opened by approved borrow requests
- Return, dispute and close transitions
- Overdue detection and reports
- Filtered, paginated lending history
"""

from .manager import LendingManager
from .models import LendingRecord
from .schemas import (
    CloseRequest,
    DamageSeverity,
    LendingRecordFilter,
    LendingRecordPage,
    LendingRecordResponse,
    LendingStatus,
    OverdueReport,
    OverdueSummary,
)

__all__ = [
    "LendingManager",
    "LendingRecord",
    "CloseRequest",
    "DamageSeverity",
    "LendingRecordFilter",
    "LendingRecordPage",
    "LendingRecordResponse",
    "LendingStatus",
    "OverdueReport",
    "OverdueSummary",
]
