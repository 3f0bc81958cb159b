"""
Proposal snapshot as read from the treasury contract.

Snapshots are transient and read-only: the ledger owns proposals, this
service only looks at them for the lifetime of one scan. ``id == 0`` is the
contract's "not found" sentinel for an unknown id.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from eth_utils import to_checksum_address


@dataclass(frozen=True)
class Proposal:
    id: int
    recipient: str
    amount: int
    deadline: int
    description: str
    votes_for: int
    votes_against: int
    votes_abstain: int
    executed: bool

    @property
    def exists(self) -> bool:
        return self.id != 0

    @classmethod
    def from_abi(cls, values: Sequence) -> "Proposal":
        """Build from the decoded ``getProposal`` tuple (contract field order)."""
        (pid, recipient, amount, deadline, description, votes_for, votes_against, votes_abstain, executed) = values
        return cls(
            id=int(pid),
            recipient=to_checksum_address(recipient),
            amount=int(amount),
            deadline=int(deadline),
            description=str(description),
            votes_for=int(votes_for),
            votes_against=int(votes_against),
            votes_abstain=int(votes_abstain),
            executed=bool(executed),
        )

    @classmethod
    def missing(cls) -> "Proposal":
        return cls(0, "0x" + "00" * 20, 0, 0, "", 0, 0, 0, False)


__all__ = ["Proposal"]
