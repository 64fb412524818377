import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import argparse

import structlog

from booking_sync.db.engine import engine
from booking_sync.dependencies import get_repository
from booking_sync.logging_config import setup_logging
from booking_sync.services.channel_import import run_channel_import
from booking_sync.services.reconcile import sync_with_crm

setup_logging()
logger = structlog.get_logger(__name__)


def main() -> None:
    """
    Import everything from the channel manager, then reconcile with the CRM.
    """
    parser = argparse.ArgumentParser(description="Run a channel-manager import and CRM sync.")
    parser.add_argument("--invite-code", help="One-time setup code if no credentials are stored")
    parser.add_argument("--skip-crm", action="store_true", help="Skip the CRM reconciliation")
    args = parser.parse_args()

    repo = get_repository(engine)

    logger.info("channel_import_started")
    try:
        result = run_channel_import(repo, invite_code=args.invite_code)
        logger.info("channel_import_finished", **result.to_dict()["bookings"])
        if not args.skip_crm:
            summary = sync_with_crm(repo, "all")
            logger.info("crm_sync_finished", rooms=summary.get("rooms"), bookings=summary.get("bookings"))
    except Exception:
        logger.exception("channel_import_failed")
        raise


if __name__ == "__main__":
    main()
