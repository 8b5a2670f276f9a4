from __future__ import annotations

"""
Command line access to the stored app user identity.

    python -m purchases.core.cli --config purchases.json status
    python -m purchases.core.cli --config purchases.json identify <app_user_id>
    python -m purchases.core.cli --config purchases.json reset
"""

import argparse
import json
import sys
import threading
from typing import Any, Callable, Dict, List, Optional

from purchases.core.config import load_config
from purchases.core.errors import PurchasesError, PurchasesErrorCode
from purchases.core.factory import IdentityComponents, build_identity_manager
from purchases.core.identity.manager import IdentityManager
from purchases.core.logger import setup_logging


def status_payload(manager: IdentityManager) -> Dict[str, Any]:
    return {
        "app_user_id": manager.current_app_user_id,
        "is_anonymous": manager.current_user_is_anonymous(),
        "state": manager.state().value,
    }


def run_and_wait(
    call: Callable[[Callable[[], None], Callable[[PurchasesError], None]], None],
    *,
    timeout_seconds: float,
) -> Optional[PurchasesError]:
    """
    Run a continuation-style call and block until one of its continuations fires.
    """
    done = threading.Event()
    result: Dict[str, Optional[PurchasesError]] = {"error": None}

    def _ok() -> None:
        done.set()

    def _err(error: PurchasesError) -> None:
        result["error"] = error
        done.set()

    call(_ok, _err)
    if not done.wait(timeout=timeout_seconds):
        raise TimeoutError(f"No response within {timeout_seconds:.0f}s")
    return result["error"]


def _parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="purchases-identity")
    p.add_argument("--config", default="purchases.json", help="JSON config file")
    p.add_argument("--api-key", default=None, help="overrides api_key from the config file")
    sub = p.add_subparsers(dest="command", required=True)
    sub.add_parser("status")
    ident = sub.add_parser("identify")
    ident.add_argument("app_user_id")
    alias = sub.add_parser("alias")
    alias.add_argument("app_user_id")
    sub.add_parser("reset")
    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = _parser().parse_args(argv)
    cfg = load_config(args.config, api_key=args.api_key)
    logger = setup_logging(cfg.log_dir)
    components: IdentityComponents = build_identity_manager(cfg, logger=logger)
    manager = components.identity_manager
    timeout = cfg.request_timeout_seconds + 5.0
    try:
        error: Optional[PurchasesError] = None
        try:
            if args.command == "identify":
                error = run_and_wait(lambda ok, err: manager.identify(args.app_user_id, ok, err), timeout_seconds=timeout)
            elif args.command == "alias":
                error = run_and_wait(lambda ok, err: manager.create_alias(args.app_user_id, ok, err), timeout_seconds=timeout)
            elif args.command == "reset":
                manager.reset()
        except TimeoutError as e:
            error = PurchasesError(PurchasesErrorCode.NETWORK_ERROR, str(e), context={"command": args.command})
        if error is not None:
            print(json.dumps({"ok": False, "error": error.to_dict()}, indent=2, sort_keys=True))
            return 1
        print(json.dumps({"ok": True, **status_payload(manager)}, indent=2, sort_keys=True))
        return 0
    finally:
        components.close()


if __name__ == "__main__":
    sys.exit(main())
