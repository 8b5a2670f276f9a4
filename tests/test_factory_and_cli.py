from __future__ import annotations

import json
import logging
import re

import pytest

from purchases.core import cli
from purchases.core.config import PurchasesConfig
from purchases.core.factory import build_identity_manager
from purchases.core.identity import IdentityState
from purchases.core.logger import LOGGER_NAME, setup_logging

ANON_RE = re.compile(r"^\$RCAnonymousID:([a-f0-9]{32})$")


@pytest.fixture(autouse=True)
def _detach_log_handlers():
    logger = logging.getLogger(LOGGER_NAME)
    existing = list(logger.handlers)
    yield
    for h in list(logger.handlers):
        if h in existing:
            continue
        logger.removeHandler(h)
        h.close()


def _cfg(tmp_path, **kw) -> PurchasesConfig:
    return PurchasesConfig(api_key="appl_test", cache_path=str(tmp_path / "cache.json"), log_dir=str(tmp_path / "logs"), **kw)


def test_build_configures_anonymous_user_and_persists(tmp_path, quiet_logger):
    comps = build_identity_manager(_cfg(tmp_path), logger=quiet_logger)
    try:
        first = comps.identity_manager.current_app_user_id
        assert ANON_RE.match(first)
    finally:
        comps.close()

    again = build_identity_manager(_cfg(tmp_path, app_user_id="cesar"), logger=quiet_logger)
    try:
        # an already cached ID survives a restart
        assert again.identity_manager.current_app_user_id == first
    finally:
        again.close()


def test_identity_switch_with_real_caches(tmp_path, quiet_logger):
    comps = build_identity_manager(_cfg(tmp_path, app_user_id="cesar"), logger=quiet_logger)
    try:
        im = comps.identity_manager
        comps.device_cache.cache_customer_info("cesar", {"entitlements": {}})
        done = []
        im.identify("maria", lambda: done.append("ok"), lambda e: done.append(e))
        assert done == ["ok"]
        assert im.current_app_user_id == "maria"
        assert im.state() == IdentityState.IDENTIFIED
        assert comps.device_cache.get_cached_customer_info("cesar") is None
    finally:
        comps.close()


def test_build_without_configure_leaves_state_unconfigured(tmp_path, quiet_logger):
    comps = build_identity_manager(_cfg(tmp_path), logger=quiet_logger, configure=False)
    try:
        assert comps.identity_manager.state() == IdentityState.UNCONFIGURED
    finally:
        comps.close()


def _write_cfg(tmp_path, **extra) -> str:
    p = tmp_path / "purchases.json"
    data = {"api_key": "appl_test", "cache_path": str(tmp_path / "cache.json"), "log_dir": str(tmp_path / "logs")}
    data.update(extra)
    p.write_text(json.dumps(data), encoding="utf-8")
    return str(p)


def test_cli_status_and_reset(tmp_path, capsys):
    path = _write_cfg(tmp_path, app_user_id="cesar")
    assert cli.main(["--config", path, "status"]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["app_user_id"] == "cesar"
    assert out["is_anonymous"] is False

    assert cli.main(["--config", path, "reset"]) == 0
    out = json.loads(capsys.readouterr().out)
    assert ANON_RE.match(out["app_user_id"])
    assert out["state"] == "ANONYMOUS"


def test_cli_identify_between_identified_users(tmp_path, capsys):
    path = _write_cfg(tmp_path, app_user_id="cesar")
    assert cli.main(["--config", path, "identify", "maria"]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["app_user_id"] == "maria"


def test_run_and_wait_returns_error():
    sentinel = object()
    assert cli.run_and_wait(lambda ok, err: err(sentinel), timeout_seconds=1.0) is sentinel
    assert cli.run_and_wait(lambda ok, err: ok(), timeout_seconds=1.0) is None


def test_setup_logging_is_idempotent(tmp_path):
    from logging.handlers import RotatingFileHandler

    logger = setup_logging(str(tmp_path / "logs"))
    before = list(logger.handlers)
    setup_logging(str(tmp_path / "logs"))
    assert logger.handlers == before
    assert sum(isinstance(h, RotatingFileHandler) for h in logger.handlers) == 1
    assert sum(type(h) is logging.StreamHandler for h in logger.handlers) == 1
    logger.info("Identifying App User ID: cesar")
    for h in logger.handlers:
        h.flush()
    text = (tmp_path / "logs" / "purchases.log").read_text(encoding="utf-8")
    assert "Identifying App User ID: cesar" in text


def test_cli_reports_timeout_as_json_error(tmp_path, capsys, monkeypatch):
    path = _write_cfg(tmp_path, app_user_id="cesar")

    def _never_answers(call, *, timeout_seconds):
        raise TimeoutError(f"No response within {timeout_seconds:.0f}s")

    monkeypatch.setattr(cli, "run_and_wait", _never_answers)
    assert cli.main(["--config", path, "identify", "maria"]) == 1
    out = json.loads(capsys.readouterr().out)
    assert out["ok"] is False
    assert out["error"]["code"] == "network_error"
    assert out["error"]["context"] == {"command": "identify"}
