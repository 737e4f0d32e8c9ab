from .findings import (
    DOCUMENT_ISSUE_KINDS,
    ConsistencyFinding,
    FindingKind,
    ScanReport,
    risk_level,
)
from .scanner import ByteBudget, ConsistencyScanner

__all__ = [
    "DOCUMENT_ISSUE_KINDS",
    "ConsistencyFinding",
    "FindingKind",
    "ScanReport",
    "risk_level",
    "ByteBudget",
    "ConsistencyScanner",
]
