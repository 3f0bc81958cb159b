from __future__ import annotations

import asyncio
from typing import Callable, Dict, List, Optional

from eth_account import Account

from dao_services.adapters.eip712 import (VOTE_FOR, ForwardRequest,
                                          encode_vote_data, recover_signer,
                                          sign_forward_request)
from dao_services.models.proposal import Proposal

CHAIN_ID = 31337
DAO = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
FORWARDER = "0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512"
RPC_URL = "http://ledger.test"

RELAYER_KEY = "0x" + "11" * 32
VOTER_KEY = "0x" + "22" * 32
OTHER_KEY = "0x" + "33" * 32

VOTER = Account.from_key(VOTER_KEY).address
RECIPIENT = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"


def make_proposal(**overrides) -> Proposal:
    fields = dict(
        id=1,
        recipient=RECIPIENT,
        amount=100,
        deadline=1000,
        description="fund the docs sprint",
        votes_for=5,
        votes_against=2,
        votes_abstain=0,
        executed=False,
    )
    fields.update(overrides)
    return Proposal(**fields)


def signed_vote(
    *,
    nonce: int = 0,
    key: str = VOTER_KEY,
    sender: Optional[str] = None,
    proposal_id: int = 1,
    vote_type: int = VOTE_FOR,
    forwarder: str = FORWARDER,
    chain_id: int = CHAIN_ID,
):
    """A vote ForwardRequest and its signature, as a browser wallet would produce."""
    request = ForwardRequest(
        sender=sender or Account.from_key(key).address,
        to=DAO,
        value=0,
        gas=200_000,
        nonce=nonce,
        data=encode_vote_data(proposal_id, vote_type),
    )
    signature = sign_forward_request(request, private_key=key, chain_id=chain_id, forwarder=forwarder)
    return request, signature


def relay_body(request: ForwardRequest, signature: str, forwarder: str = FORWARDER) -> dict:
    return {"forwarder": forwarder, "request": request.to_json(), "signature": signature}


class FakeLedger:
    """
    In-memory stand-in for LedgerClient.

    Mirrors the contract behavior the services rely on: ``execute`` marks a
    proposal executed and pays it out of the treasury, the forwarder checks
    EIP-712 signatures against per-signer nonces and consumes the nonce on
    execution. Individual calls can be made to fail via ``fail``.
    """

    def __init__(
        self,
        proposals: Optional[List[Proposal]] = None,
        *,
        now: int = 10_000,
        delay: int = 3600,
        balance: int = 1_000,
        chain_id: int = CHAIN_ID,
    ) -> None:
        self.proposals: Dict[int, Proposal] = {p.id: p for p in (proposals or [])}
        self.now = now
        self.delay = delay
        self.treasury_balance = balance
        self._chain_id = chain_id
        self.nonces: Dict[str, int] = {}
        self.fail: Dict[str, Callable[..., Optional[BaseException]]] = {}
        self.gate: Optional[asyncio.Event] = None
        self.calls: List[str] = []
        self.executed: List[int] = []
        self.forwarded: List[ForwardRequest] = []
        self.closed = False

    def _enter(self, name: str, *args) -> None:
        self.calls.append(name)
        hook = self.fail.get(name)
        if hook is not None:
            exc = hook(*args)
            if exc is not None:
                raise exc

    # ---- treasury ----

    async def current_time(self) -> int:
        self._enter("current_time")
        if self.gate is not None:
            await self.gate.wait()
        return self.now

    async def execution_delay(self) -> int:
        self._enter("execution_delay")
        return self.delay

    async def next_proposal_id(self) -> int:
        self._enter("next_proposal_id")
        return max(self.proposals, default=0) + 1

    async def get_proposal(self, proposal_id: int) -> Proposal:
        self._enter("get_proposal", proposal_id)
        return self.proposals.get(proposal_id) or Proposal.missing()

    async def balance(self, address: Optional[str] = None) -> int:
        self._enter("balance")
        return self.treasury_balance

    async def execute(self, proposal_id: int) -> str:
        self._enter("execute", proposal_id)
        p = self.proposals[proposal_id]
        self.proposals[proposal_id] = Proposal(**{**p.__dict__, "executed": True})
        self.treasury_balance -= p.amount
        self.executed.append(proposal_id)
        return f"0x{0xE0 + proposal_id:064x}"

    # ---- forwarder ----

    async def chain_id(self) -> int:
        self._enter("chain_id")
        return self._chain_id

    async def head(self) -> int:
        self._enter("head")
        return 42

    async def get_nonce(self, forwarder: str, owner: str) -> int:
        self._enter("get_nonce", owner)
        return self.nonces.get(owner, 0)

    async def verify_forward(self, forwarder: str, request: ForwardRequest, signature: str) -> bool:
        self._enter("verify_forward", request)
        signer = recover_signer(request, signature, chain_id=self._chain_id, forwarder=forwarder)
        return signer == request.sender and request.nonce == self.nonces.get(request.sender, 0)

    async def execute_forward(self, forwarder: str, request: ForwardRequest, signature: str) -> str:
        self._enter("execute_forward", request)
        self.nonces[request.sender] = self.nonces.get(request.sender, 0) + 1
        self.forwarded.append(request)
        return f"0x{len(self.forwarded):064x}"

    async def close(self) -> None:
        self.closed = True

    async def __aenter__(self) -> "FakeLedger":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
