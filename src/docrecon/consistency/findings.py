from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Optional


class FindingKind(StrEnum):
    HEALTHY = "healthy"
    MISSING_FILE = "missing_file"
    ORPHANED_RECORD = "orphaned_record"
    ORPHANED_FILE = "orphaned_file"
    CHECKSUM_MISMATCH = "checksum_mismatch"


# Kinds that count against a document's health. Orphaned files have no record
# depending on them and are reported as a hygiene metric instead.
DOCUMENT_ISSUE_KINDS = frozenset({FindingKind.MISSING_FILE, FindingKind.CHECKSUM_MISMATCH})

_RISK = {
    FindingKind.MISSING_FILE: "high",
    FindingKind.CHECKSUM_MISMATCH: "medium",
    FindingKind.ORPHANED_RECORD: "medium",
}


def risk_level(kind: FindingKind) -> str:
    """high: bytes are gone. medium: bytes are suspect or were never written."""
    return _RISK.get(kind, "low")


@dataclass(frozen=True)
class ConsistencyFinding:
    """One classification from a single scan. Never persisted."""

    kind: FindingKind
    document_id: Optional[str] = None
    storage_key: Optional[str] = None
    storage_status: Optional[str] = None
    details: str = ""

    @property
    def risk_level(self) -> str:
        return risk_level(self.kind)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "document_id": self.document_id,
            "storage_key": self.storage_key,
            "storage_status": self.storage_status,
            "risk_level": self.risk_level,
            "details": self.details,
        }


@dataclass
class ScanReport:
    findings: list[ConsistencyFinding] = field(default_factory=list)
    started_at: Optional[dt.datetime] = None
    finished_at: Optional[dt.datetime] = None
    primary_reachable: bool = True
    # documents whose primary copy could not be checked this run
    unchecked: list[str] = field(default_factory=list)
    disk_file_count: int = 0

    def by_kind(self, kind: FindingKind) -> list[ConsistencyFinding]:
        return [f for f in self.findings if f.kind == kind]

    def counts(self) -> dict[str, int]:
        out = {k.value: 0 for k in FindingKind}
        for f in self.findings:
            out[f.kind.value] += 1
        return out

    @property
    def total_records(self) -> int:
        return sum(1 for f in self.findings if f.kind != FindingKind.ORPHANED_FILE) + len(
            self.unchecked
        )

    @property
    def document_issue_count(self) -> int:
        return sum(1 for f in self.findings if f.kind in DOCUMENT_ISSUE_KINDS)

    @property
    def orphaned_file_count(self) -> int:
        return len(self.by_kind(FindingKind.ORPHANED_FILE))

    @property
    def duration_ms(self) -> Optional[float]:
        if self.started_at is None or self.finished_at is None:
            return None
        return round((self.finished_at - self.started_at).total_seconds() * 1000, 2)

    def preview(self, limit: int = 10) -> dict[str, list[dict[str, Any]]]:
        """First ``limit`` findings per non-healthy kind."""
        return {
            kind.value: [f.to_dict() for f in self.by_kind(kind)[:limit]]
            for kind in FindingKind
            if kind != FindingKind.HEALTHY
        }

    def to_dict(self, preview_limit: int = 10) -> dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_ms": self.duration_ms,
            "primary_reachable": self.primary_reachable,
            "total_records": self.total_records,
            "counts": self.counts(),
            "document_issues": self.document_issue_count,
            "orphaned_files": self.orphaned_file_count,
            "disk_files": self.disk_file_count,
            "unchecked": len(self.unchecked),
            "findings": self.preview(preview_limit),
        }
