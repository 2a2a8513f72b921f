"""
Script to re-sync a user's subscription from Stripe and show their entitlement.
Run: python -m scripts.sync_subscription --email user@example.com
     python -m scripts.sync_subscription --subscription-id sub_123
     python -m scripts.sync_subscription --email user@example.com --dry-run
"""
import argparse
import logging
import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.core.entitlement import is_subscribed
from app.core.exceptions import BillingError
from app.db.models.user import User
from app.db.session import SessionLocal
from app.services import billing_service
from app.services.stripe_service import get_stripe_gateway
from app.services.subscription_service import get_subscription_by_user_id

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def show_subscription(db, user: User):
    subscription = get_subscription_by_user_id(db, user.id)
    if not subscription:
        print(f"{user.email}: no subscription row")
        return
    print(
        f"{user.email}: customer={subscription.stripe_customer_id} "
        f"subscription={subscription.stripe_subscription_id} price={subscription.stripe_price_id} "
        f"status={subscription.status} period_end={subscription.stripe_current_period_end} "
        f"subscribed={is_subscribed(subscription)}"
    )


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--email", help="User email to sync")
    target.add_argument("--subscription-id", help="Stripe subscription id to sync")
    parser.add_argument("--dry-run", action="store_true", help="Only print the stored row")
    args = parser.parse_args(argv)

    db = SessionLocal()
    try:
        if args.dry_run:
            if not args.email:
                parser.error("--dry-run needs --email")
            user = db.query(User).filter(User.email == args.email.strip().lower()).first()
            if not user:
                logger.error(f"User {args.email} not found")
                return 1
            show_subscription(db, user)
            return 0

        gateway = get_stripe_gateway()
        if args.email:
            result = billing_service.admin_sync_by_email(db, gateway, args.email.strip().lower())
        else:
            result = billing_service.admin_sync_by_subscription_id(db, gateway, args.subscription_id)
        logger.info(result["message"])

        user = db.query(User).filter(User.id == result["userId"]).first()
        show_subscription(db, user)
        return 0
    except BillingError as e:
        logger.error(f"Sync failed: {e.message}")
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
