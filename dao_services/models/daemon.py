from __future__ import annotations

"""
Response models for ``GET /daemon``.

A ScanResult is purely a report of one scan: it is returned to the caller
and logged, never persisted. ``skipped[].reason`` is a stable code:

- not_found, already_executed, not_yet_due, not_approved, insufficient_funds
  (expected outcomes of the eligibility rules), or
- an error-class code (network_error, contract_reverted, ...) when reading or
  executing that proposal failed.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ExecutedProposal(BaseModel):
    id: int = Field(..., ge=1, description="Proposal id")
    tx: str = Field(..., description="Transaction hash of the executeProposal call")


class SkippedProposal(BaseModel):
    id: int = Field(..., ge=1)
    reason: str = Field(..., description="Stable skip reason code")
    detail: Optional[Dict[str, Any]] = Field(default=None, description="Diagnostics for operators")


class ScanResult(BaseModel):
    executed: List[ExecutedProposal] = Field(default_factory=list)
    skipped: List[SkippedProposal] = Field(default_factory=list)
    checked: int = Field(0, ge=0, description="Number of proposal ids examined")
    timestamp: Optional[int] = Field(default=None, description="Chain time the scan evaluated against")
    coalesced: bool = Field(False, description="True when a scan was already in flight and this trigger was dropped")

    @classmethod
    def coalesced_result(cls) -> "ScanResult":
        return cls(coalesced=True)


__all__ = ["ExecutedProposal", "SkippedProposal", "ScanResult"]
