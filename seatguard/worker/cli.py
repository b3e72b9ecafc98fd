"""CLI entry point for the seat reconciliation job."""

from __future__ import annotations

import argparse
import asyncio

import structlog

from seatguard.billing.reconcile import SeatReconciler
from seatguard.config.logging import setup_logging
from seatguard.config.settings import get_settings
from seatguard.storage.database import get_engine

logger = structlog.get_logger(__name__)


async def _run(company_id: str | None) -> int:
    engine = get_engine()
    reconciler = SeatReconciler(engine)
    try:
        if company_id:
            await reconciler.reconcile(company_id)
        else:
            await reconciler.reconcile_all()
    finally:
        await engine.dispose()
    return 0


def main(argv: list[str] | None = None) -> int:
    """Reconcile purchased seats with subscription state, then exit."""
    parser = argparse.ArgumentParser(prog="seatguard-reconcile")
    parser.add_argument("--company-id", help="reconcile a single company")
    args = parser.parse_args(argv)

    settings = get_settings()
    setup_logging(log_level=settings.log_level, json_output=True)
    return asyncio.run(_run(args.company_id))


if __name__ == "__main__":
    raise SystemExit(main())
