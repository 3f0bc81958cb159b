from __future__ import annotations

"""
ExecutionDaemon: scan every proposal and execute the ones that are due.

One scan is a sequential pipeline of ledger round-trips:

    now        = latest block timestamp          (prerequisite)
    delay      = EXECUTION_DELAY                 (prerequisite, fetched every scan)
    next_id    = nextProposalId                  (prerequisite)
    for id in 1 .. next_id-1, ascending:
        proposal = getProposal(id)
        precheck(proposal, now, delay)           -> skip unless only funding remains
        balance  = treasury balance              (read right before executing)
        check_funds(proposal, balance)           -> skip if short
        execute(id)                              -> executed[] or skipped[]

Guarantees
----------
- Single flight per process: a scan triggered while another is in flight
  returns immediately with ``coalesced=True`` and performs no ledger calls.
- A prerequisite failure aborts the scan with ``PrerequisiteFailed``; no
  proposal's eligibility can be trusted without chain time and the delay.
- Any failure for one id (read, balance or execute) is classified and
  recorded in ``skipped``; it never aborts the remaining ids.
- Each id is attempted at most once per scan. There are no inline retries;
  the next scan re-evaluates from fresh ledger state.
- Competing proposals are served first come, first served by ascending id.
  The balance is re-read before every execute and ``execute`` waits for the
  receipt, so a later proposal sees the payout of an earlier one.

The guard is in-process only. Running several instances against one
treasury needs an external lock (leader election or a distributed mutex).
"""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from ..errors import ApiError, PrerequisiteFailed
from ..logging import get_logger
from ..models.daemon import ExecutedProposal, ScanResult, SkippedProposal
from .classify import Failure, classify
from .eligibility import Decision, check_funds, precheck

log = get_logger(__name__)

T = TypeVar("T")


class ExecutionDaemon:
    def __init__(self, ledger, *, metrics=None) -> None:
        self._ledger = ledger
        self._metrics = metrics
        self._lock = asyncio.Lock()

    @property
    def in_flight(self) -> bool:
        return self._lock.locked()

    async def scan(self) -> ScanResult:
        if self._lock.locked():
            log.info("daemon.scan.coalesced")
            self._count_scan("coalesced")
            return ScanResult.coalesced_result()

        async with self._lock:
            try:
                result = await self._scan()
            except Exception:
                self._count_scan("failed")
                raise
            self._count_scan("ok")
            return result

    # ------------------------------------------------------------------ #

    async def _scan(self) -> ScanResult:
        now = await self._prerequisite("could_not_get_block_timestamp", self._ledger.current_time)
        delay = await self._prerequisite("could_not_get_execution_delay", self._ledger.execution_delay)
        next_id = await self._prerequisite("could_not_get_next_proposal_id", self._ledger.next_proposal_id)

        log.info("daemon.scan.start", now=now, execution_delay=delay, proposals=max(0, next_id - 1))
        result = ScanResult(timestamp=now)

        for proposal_id in range(1, next_id):
            result.checked += 1
            await self._process(proposal_id, now, delay, result)

        log.info(
            "daemon.scan.finished",
            checked=result.checked,
            executed=len(result.executed),
            skipped=len(result.skipped),
        )
        return result

    async def _prerequisite(self, code: str, fetch: Callable[[], Awaitable[T]]) -> T:
        try:
            return await fetch()
        except ApiError:
            raise
        except Exception as exc:
            failure = classify(exc)
            log.error("daemon.scan.aborted", code=code, kind=failure.code, error=failure.message)
            raise PrerequisiteFailed(
                code,
                f"Scan aborted: {code.replace('_', ' ')}",
                details={"kind": failure.code, **failure.detail()},
            ) from exc

    async def _process(self, proposal_id: int, now: int, delay: int, result: ScanResult) -> None:
        try:
            proposal = await self._ledger.get_proposal(proposal_id)
        except ApiError:
            raise
        except Exception as exc:
            self._skip_failure(result, proposal_id, "read", classify(exc))
            return

        decision = precheck(proposal, now, delay)
        if not decision.eligible:
            self._skip_decision(result, proposal_id, decision)
            return

        try:
            balance = await self._ledger.balance()
        except ApiError:
            raise
        except Exception as exc:
            self._skip_failure(result, proposal_id, "balance", classify(exc))
            return

        decision = check_funds(proposal, balance)
        if not decision.eligible:
            self._skip_decision(result, proposal_id, decision)
            return

        try:
            tx_hash = await self._ledger.execute(proposal_id)
        except ApiError:
            raise
        except Exception as exc:
            self._skip_failure(result, proposal_id, "execute", classify(exc))
            return

        log.info("daemon.proposal.executed", proposal_id=proposal_id, tx_hash=tx_hash, amount=str(proposal.amount))
        result.executed.append(ExecutedProposal(id=proposal_id, tx=tx_hash))
        if self._metrics is not None:
            self._metrics.proposals_executed_total.inc()

    # ------------------------------------------------------------------ #

    def _skip_decision(self, result: ScanResult, proposal_id: int, decision: Decision) -> None:
        log.debug("daemon.proposal.skipped", proposal_id=proposal_id, reason=decision.reason, **decision.detail)
        self._record_skip(result, proposal_id, decision.reason, dict(decision.detail) or None)

    def _skip_failure(self, result: ScanResult, proposal_id: int, stage: str, failure: Failure) -> None:
        log.warning(
            "daemon.proposal.failed",
            proposal_id=proposal_id,
            stage=stage,
            kind=failure.code,
            error=failure.message,
        )
        self._record_skip(result, proposal_id, failure.code, {"stage": stage, **failure.detail()})

    def _record_skip(self, result: ScanResult, proposal_id: int, reason: str, detail: Optional[dict]) -> None:
        result.skipped.append(SkippedProposal(id=proposal_id, reason=reason, detail=detail))
        if self._metrics is not None:
            self._metrics.proposals_skipped_total.labels(reason).inc()

    def _count_scan(self, outcome: str) -> None:
        if self._metrics is not None:
            self._metrics.scans_total.labels(outcome).inc()


__all__ = ["ExecutionDaemon"]
