"""
Reset Subscription Periods Script

Scheduled maintenance for the subscription ledger:
- starts a fresh period (zeroed usage) for renewing subscriptions whose
  period has ended
- moves cancelled or points-redeemed subscriptions whose period has
  ended back to the free tier

Usage:
    python scripts/reset_subscription_periods.py
    python scripts/reset_subscription_periods.py --dry-run
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.config.settings import settings
from app.infrastructure.db.database import close_db, get_session_context
from app.infrastructure.services.activation_service import SubscriptionActivationService

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


async def run(dry_run: bool = False) -> None:
    """Run both maintenance passes in one transaction."""
    async with get_session_context() as session:
        service = SubscriptionActivationService(session)

        expired = await service.expire_cancelled()
        reset = await service.reset_expired_periods()

        logger.info(f"Expired: {expired}, reset: {reset}")

        if dry_run:
            logger.info("Dry run - rolling back")
            await session.rollback()

    await close_db()


def main():
    parser = argparse.ArgumentParser(description="Reset elapsed subscription periods")
    parser.add_argument("--dry-run", action="store_true", help="Report without saving")
    args = parser.parse_args()
    asyncio.run(run(dry_run=args.dry_run))


if __name__ == "__main__":
    main()
