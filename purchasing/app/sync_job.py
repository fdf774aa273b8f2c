"""
Scheduled BMS synchronisation.

    purchasing-sync suppliers|orders|receptions|all

``all`` runs suppliers first so that orders referencing a newly created BMS
supplier are not skipped, then orders, then receptions. Each run is its own
transaction; a failure stops the job with a non-zero exit code.
"""
from __future__ import annotations

import argparse
from dataclasses import asdict

from purchasing.app.api.deps import get_bms_client
from purchasing.app.core.logging import configure_logging, get_logger
from purchasing.app.db.session import SessionLocal
from purchasing.services import procurement
from purchasing.services.errors import PurchasingError

logger = get_logger(__name__)

JOBS = {
    "suppliers": procurement.run_supplier_sync,
    "orders": procurement.run_order_sync,
    "receptions": procurement.run_reception_sync,
}


def run_sync(targets: list[str], client=None) -> dict[str, dict]:
    client = client or get_bms_client()
    results = {}
    db = SessionLocal()
    try:
        for name in targets:
            result = asdict(JOBS[name](db, client))
            result.pop("suppliers", None)
            results[name] = result
            logger.info("sync_job.step_done", job=name, **result)
    finally:
        db.close()
    return results


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="purchasing-sync", description="Synchronise purchasing data with BMS")
    parser.add_argument("target", choices=[*JOBS, "all"])
    parser.add_argument("--log-level", default=None)
    args = parser.parse_args(argv)

    configure_logging(args.log_level)
    targets = list(JOBS) if args.target == "all" else [args.target]
    try:
        run_sync(targets)
    except PurchasingError as exc:
        logger.error("sync_job.failed", target=args.target, error=str(exc))
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
