from __future__ import annotations

"""
MetaTxRelay: submit voter-signed forward requests and pay their gas.

Protocol for ``relay(forwarder, request, signature)``:

1. Refuse when gasless voting is disabled, or when a trusted forwarder is
   configured and the request names another one (the relayer only pays gas
   for the forwarder it was deployed with).
2. ``verify(request, signature)`` on the forwarder. A false result is never
   followed by an execution attempt. The forwarder's current nonce for the
   signer is then read to tell a replay (``nonce_already_used``) and an
   out-of-order request (``nonce_out_of_order``) from a bad signature. A
   revert inside ``verify`` (an unrecoverable signature) is answered as
   ``invalid_signature`` as well.
3. ``execute(request, signature)`` with a fixed gas bound, signed by the
   relayer key; the resulting transaction hash is returned.

The forwarder's nonce is the only deduplication: a replayed request fails
verification because its nonce was consumed by the first execution. The
relay never retries a submission and never signs request content.
"""

from typing import Optional

from eth_utils import to_checksum_address

from ..adapters.eip712 import ForwardRequest
from ..errors import (ApiError, BadRequest, GaslessDisabled, InvalidSignature,
                      NonceAlreadyUsed)
from ..logging import get_logger
from .classify import FailureKind, classify

log = get_logger(__name__)


class MetaTxRelay:
    def __init__(
        self,
        ledger,
        *,
        trusted_forwarder: Optional[str] = None,
        enabled: bool = True,
        metrics=None,
    ) -> None:
        self._ledger = ledger
        self._trusted = to_checksum_address(trusted_forwarder) if trusted_forwarder else None
        self._enabled = enabled
        self._metrics = metrics

    async def relay(self, forwarder: str, request: ForwardRequest, signature: str) -> str:
        try:
            tx_hash = await self._relay(to_checksum_address(forwarder), request, signature)
        except ApiError as err:
            self._count(err.code)
            raise
        self._count("submitted")
        return tx_hash

    async def _relay(self, forwarder: str, request: ForwardRequest, signature: str) -> str:
        if not self._enabled:
            raise GaslessDisabled()
        if self._trusted is not None and forwarder != self._trusted:
            raise BadRequest(
                "Forwarder is not the one this relayer serves",
                code="unknown_forwarder",
                details={"expected": self._trusted, "got": forwarder},
            )

        try:
            valid = await self._ledger.verify_forward(forwarder, request, signature)
        except ApiError:
            raise
        except Exception as exc:
            failure = classify(exc)
            if failure.kind in (FailureKind.CONTRACT_REVERTED, FailureKind.INVALID_SIGNATURE):
                # ECDSA recovery reverts on malformed signatures (bad v, high s)
                log.info("relay.rejected", reason="invalid_signature", sender=request.sender, error=failure.message)
                raise InvalidSignature(details={"reason": failure.reason or failure.message}) from exc
            raise self._failed("verify", exc) from exc

        if not valid:
            raise await self._rejection(forwarder, request)

        try:
            tx_hash = await self._ledger.execute_forward(forwarder, request, signature)
        except ApiError:
            raise
        except Exception as exc:
            raise self._failed("execute", exc) from exc

        log.info(
            "relay.submitted",
            tx_hash=tx_hash,
            sender=request.sender,
            to=request.to,
            nonce=request.nonce,
            forwarder=forwarder,
        )
        return tx_hash

    async def _rejection(self, forwarder: str, request: ForwardRequest) -> ApiError:
        """Explain a failed ``verify``; nonce mismatches outrank signature errors."""
        try:
            current = await self._ledger.get_nonce(forwarder, request.sender)
        except ApiError:
            raise
        except Exception as exc:
            log.warning("relay.nonce_lookup_failed", sender=request.sender, error=str(exc))
            return InvalidSignature()

        details = {"expected_nonce": current, "nonce": request.nonce}
        if request.nonce < current:
            log.info("relay.rejected", reason="nonce_already_used", sender=request.sender, **details)
            return NonceAlreadyUsed(details=details)
        if request.nonce > current:
            log.info("relay.rejected", reason="nonce_out_of_order", sender=request.sender, **details)
            return NonceAlreadyUsed(
                "Request nonce is ahead of the forwarder, submit pending requests first",
                code="nonce_out_of_order",
                details=details,
            )
        log.info("relay.rejected", reason="invalid_signature", sender=request.sender)
        return InvalidSignature()

    def _failed(self, stage: str, exc: BaseException) -> ApiError:
        failure = classify(exc)
        log.warning("relay.failed", stage=stage, kind=failure.code, error=failure.message)
        return failure.to_api_error()

    def _count(self, outcome: str) -> None:
        if self._metrics is not None:
            self._metrics.relay_requests_total.labels(outcome).inc()


__all__ = ["MetaTxRelay"]
