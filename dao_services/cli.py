"""
Operator CLI for DAO Services.

Commands:
  - serve         : run the HTTP API under uvicorn
  - scan          : run one execution scan and print the result as JSON
  - check-config  : report missing or malformed settings
  - sign-vote     : build and sign a gasless vote, print the POST /relay body

Usage:
  dao-services <command> [options]
  python -m dao_services.cli <command> [options]
"""

from __future__ import annotations

import asyncio
import json
from typing import Optional

import typer
from eth_account import Account
from eth_utils import to_checksum_address

from .adapters.eip712 import (DEFAULT_VOTE_GAS, VOTE_ABSTAIN, VOTE_AGAINST,
                              VOTE_FOR, ForwardRequest, encode_vote_data,
                              sign_forward_request)
from .adapters.eth_rpc import EthRpc, EthRpcConfig
from .adapters.ledger import LedgerClient, LedgerConfig
from .config import Settings, get_settings, normalize_private_key
from .errors import ApiError
from .logging import setup_logging
from .services.daemon import ExecutionDaemon

app = typer.Typer(add_completion=False, help="DAO Services operator CLI")

_VOTES = {"against": VOTE_AGAINST, "for": VOTE_FOR, "abstain": VOTE_ABSTAIN}


def _fail(err: ApiError) -> None:
    typer.echo(json.dumps(err.to_body(), indent=2), err=True)
    raise typer.Exit(code=1)


def _parse_vote(value: str) -> int:
    v = value.strip().lower()
    if v in _VOTES:
        return _VOTES[v]
    if v in {"0", "1", "2"}:
        return int(v)
    raise typer.BadParameter("vote must be for, against, abstain or 0/1/2")


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override LOG_LEVEL"),
    log_format: str = typer.Option("console", "--log-format", help="json or console"),
):
    """
    Shared options for all subcommands.
    """
    settings = get_settings()
    setup_logging(level=log_level or settings.log_level, log_format=log_format)


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", "--host"),
    port: int = typer.Option(8080, "--port"),
    workers: int = typer.Option(1, "--workers"),
    reload: bool = typer.Option(False, "--reload"),
):
    """
    Run the HTTP API (GET /daemon, POST /relay, health and metrics).
    """
    from .main import run

    run(host=host, port=port, workers=workers, reload=reload, log_level=get_settings().log_level)


@app.command("scan")
def scan():
    """
    Run one execution scan against the configured treasury. Exit code 1 when
    the scan could not start (misconfiguration or a prerequisite failure).
    """
    settings = get_settings()
    try:
        settings.require_daemon()
    except ApiError as e:
        _fail(e)

    async def _run():
        async with LedgerClient.from_settings(settings) as ledger:
            return await ExecutionDaemon(ledger).scan()

    try:
        result = asyncio.run(_run())
    except ApiError as e:
        _fail(e)
    typer.echo(result.model_dump_json(indent=2))


def _config_report(settings: Settings) -> dict:
    report = {
        "rpc_url": settings.rpc_url,
        "daemon": {"missing": settings.missing_for_daemon()},
        "relay": {"missing": settings.missing_for_relay(), "enabled": settings.enable_gasless},
        "errors": [],
    }

    def _check(field: str, accessor):
        try:
            report[field] = accessor()
        except ApiError as e:
            # plain absence is already listed under "missing"
            if e.code != "server_misconfigured":
                report["errors"].append(e.code)

    _check("dao_address", settings.treasury_address)
    _check("forwarder_address", settings.trusted_forwarder)
    if settings.relayer_private_key is not None:
        _check("relayer_address", lambda: Account.from_key(settings.relayer_key()).address)
    return report


@app.command("check-config")
def check_config():
    """
    Print which settings are missing or malformed. Exit code 1 unless the
    execution daemon can run.
    """
    report = _config_report(get_settings())
    typer.echo(json.dumps(report, indent=2))
    if report["daemon"]["missing"] or report["errors"]:
        raise typer.Exit(code=1)


@app.command("sign-vote")
def sign_vote(
    proposal_id: int = typer.Option(..., "--proposal-id", "-p", min=1),
    vote: str = typer.Option(..., "--vote", "-v", help="for | against | abstain"),
    voter_key: str = typer.Option(..., "--voter-key", envvar="VOTER_PRIVATE_KEY", help="Voter private key (hex)"),
    nonce: Optional[int] = typer.Option(None, "--nonce", min=0, help="Forwarder nonce; read from the ledger if omitted"),
    chain_id: Optional[int] = typer.Option(None, "--chain-id", help="Read from the ledger if omitted"),
    forwarder: Optional[str] = typer.Option(None, "--forwarder", help="Defaults to NEXT_PUBLIC_FORWARDER_ADDRESS"),
    dao: Optional[str] = typer.Option(None, "--dao", help="Defaults to NEXT_PUBLIC_DAO_ADDRESS"),
    gas: int = typer.Option(DEFAULT_VOTE_GAS, "--gas"),
):
    """
    Build a ForwardRequest for ``vote(proposalId, voteType)``, sign it as the
    voter and print the JSON body for POST /relay.
    """
    settings = get_settings()
    vote_type = _parse_vote(vote)
    try:
        key = normalize_private_key(voter_key)
    except ApiError:
        raise typer.BadParameter("--voter-key must be 32 bytes of hex") from None
    try:
        forwarder = forwarder or settings.trusted_forwarder()
        dao = dao or settings.treasury_address()
    except ApiError as e:
        _fail(e)
    if not forwarder:
        raise typer.BadParameter("--forwarder is required when NEXT_PUBLIC_FORWARDER_ADDRESS is unset")

    voter = Account.from_key(key).address

    async def _resolve(nonce: Optional[int], chain_id: Optional[int]):
        if nonce is not None and chain_id is not None:
            return nonce, chain_id
        if not settings.rpc_url:
            raise typer.BadParameter("--nonce and --chain-id are required when RPC_URL is unset")
        rpc = EthRpc(EthRpcConfig(url=settings.rpc_url, timeout_s=settings.rpc_timeout_s))
        async with LedgerClient(rpc, LedgerConfig()) as ledger:
            if nonce is None:
                nonce = await ledger.get_nonce(forwarder, voter)
            if chain_id is None:
                chain_id = await ledger.chain_id()
        return nonce, chain_id

    nonce, chain_id = asyncio.run(_resolve(nonce, chain_id))

    request = ForwardRequest(
        sender=voter,
        to=dao,
        value=0,
        gas=gas,
        nonce=nonce,
        data=encode_vote_data(proposal_id, vote_type),
    )
    signature = sign_forward_request(request, private_key=key, chain_id=chain_id, forwarder=forwarder)
    typer.echo(json.dumps(
        {"forwarder": to_checksum_address(forwarder), "request": request.to_json(), "signature": signature},
        indent=2,
    ))


if __name__ == "__main__":
    app()
