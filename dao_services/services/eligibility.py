"""
Execution eligibility of a single proposal.

Pure functions, no I/O. Checks run in a fixed order and the first match wins:

1. ``id == 0``                              → NOT_FOUND
2. ``executed``                             → ALREADY_EXECUTED
3. ``now < deadline + execution_delay``     → NOT_YET_DUE (carries seconds remaining)
4. ``votes_for <= votes_against``           → NOT_APPROVED (abstentions never count)
5. ``treasury_balance < amount``            → INSUFFICIENT_FUNDS
6. otherwise                                → ELIGIBLE

Funding is last because it is the only condition that can change between
scans without any action on the proposal itself. The execution window opens
exactly at ``deadline + execution_delay`` (inclusive).

``precheck`` runs steps 1-4 only, so the daemon can defer the balance read
to the moment right before it would execute.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..models.proposal import Proposal


class Verdict(str, enum.Enum):
    ELIGIBLE = "eligible"
    NOT_FOUND = "not_found"
    ALREADY_EXECUTED = "already_executed"
    NOT_YET_DUE = "not_yet_due"
    NOT_APPROVED = "not_approved"
    INSUFFICIENT_FUNDS = "insufficient_funds"


@dataclass(frozen=True)
class Decision:
    verdict: Verdict
    detail: Dict[str, Any] = field(default_factory=dict)

    @property
    def eligible(self) -> bool:
        return self.verdict is Verdict.ELIGIBLE

    @property
    def reason(self) -> str:
        return self.verdict.value


ELIGIBLE = Decision(Verdict.ELIGIBLE)


def execution_time(proposal: Proposal, execution_delay: int) -> int:
    return proposal.deadline + execution_delay


def precheck(proposal: Proposal, now: int, execution_delay: int) -> Decision:
    """Steps 1-4. Returns ``ELIGIBLE`` when only the funds check remains."""
    if not proposal.exists:
        return Decision(Verdict.NOT_FOUND)
    if proposal.executed:
        return Decision(Verdict.ALREADY_EXECUTED)

    opens_at = execution_time(proposal, execution_delay)
    if now < opens_at:
        return Decision(
            Verdict.NOT_YET_DUE,
            {"execution_time": opens_at, "remaining_s": opens_at - now},
        )

    if proposal.votes_for <= proposal.votes_against:
        return Decision(
            Verdict.NOT_APPROVED,
            {
                "votes_for": proposal.votes_for,
                "votes_against": proposal.votes_against,
                "votes_abstain": proposal.votes_abstain,
            },
        )
    return ELIGIBLE


def check_funds(proposal: Proposal, treasury_balance: int) -> Decision:
    if treasury_balance < proposal.amount:
        return Decision(
            Verdict.INSUFFICIENT_FUNDS,
            {"balance": str(treasury_balance), "amount": str(proposal.amount)},
        )
    return ELIGIBLE


def evaluate(
    proposal: Proposal,
    now: int,
    execution_delay: int,
    treasury_balance: Optional[int],
) -> Decision:
    """
    Full decision. ``treasury_balance=None`` is only valid when the outcome
    is decided before the funds check.
    """
    decision = precheck(proposal, now, execution_delay)
    if not decision.eligible:
        return decision
    if treasury_balance is None:
        raise ValueError("treasury_balance is required to decide an otherwise eligible proposal")
    return check_funds(proposal, treasury_balance)


__all__ = [
    "Verdict",
    "Decision",
    "ELIGIBLE",
    "execution_time",
    "precheck",
    "check_funds",
    "evaluate",
]
