from __future__ import annotations

import importlib

import pytest
from structlog.testing import capture_logs

from dao_services.logging import get_logger


def test_named_logger_follows_configuration_applied_later():
    log = get_logger("dao_services.example")

    with capture_logs() as logs:
        log.info("daemon.scan.finished", executed=1)

    assert logs == [{"event": "daemon.scan.finished", "executed": 1, "log_level": "info"}]


@pytest.mark.parametrize(
    "module",
    [
        "dao_services.adapters.ledger",
        "dao_services.services.daemon",
        "dao_services.services.relay",
        "dao_services.middleware.logging",
        "dao_services.app",
    ],
)
def test_modules_with_module_level_loggers_import(module):
    assert importlib.import_module(module).log is not None
