"""Paddle subscription status checks for signed-in users."""
import logging
from typing import Any, Dict, Optional

from core.base_service import BaseService
from core.interfaces import IDatabaseHelper, ISubscriptionService
from services.paddle_billing_client import PaddleBillingClient

logger = logging.getLogger(__name__)

# past_due keeps full access while Paddle retries the payment
ACTIVE_SUBSCRIPTION_STATUSES = frozenset({"active", "trialing", "past_due"})
INACTIVE_SUBSCRIPTION_STATUSES = frozenset({"canceled", "paused"})

SUBSCRIPTIONS_ERROR_MESSAGE = "Something went wrong, please try again later"


def is_active_status(status: Optional[str]) -> bool:
    return (status or "").lower() in ACTIVE_SUBSCRIPTION_STATUSES


class SubscriptionService(BaseService, ISubscriptionService):
    """Looks up the Paddle customer of a user and reduces subscription state."""

    def __init__(self, db_helper: IDatabaseHelper, paddle_client: Optional[PaddleBillingClient] = None):
        super().__init__(db_helper)
        self.paddle = paddle_client

    def _require_paddle(self) -> PaddleBillingClient:
        if self.paddle is None:
            raise RuntimeError("Paddle client is not configured")
        return self.paddle

    async def get_customer_id(self, user: Any) -> str:
        """Customer id stored for the user's email, or an empty string."""

        email = self.user_email(user)
        if not email:
            logger.info("[SUBSCRIPTION] no email found for user")
            return ""
        return await self.db_helper.get_customer_id_by_email(email)

    async def has_active_subscription(self, user: Any) -> bool:
        try:
            customer_id = await self.get_customer_id(user)
            if not customer_id:
                return False

            page = await self._require_paddle().list_subscriptions([customer_id], per_page=1)
            return any(is_active_status(sub.get("status")) for sub in page.items)
        except Exception as e:
            logger.error("[SUBSCRIPTION] error checking subscription status: %s", e)
            return False

    async def get_subscription_status(self, user: Any) -> Dict[str, bool]:
        try:
            customer_id = await self.get_customer_id(user)
            if not customer_id:
                return {
                    "has_subscription": False,
                    "has_customer_id": False,
                    "needs_onboarding": True,
                }

            has_subscription = await self.has_active_subscription(user)
            return {
                "has_subscription": has_subscription,
                "has_customer_id": True,
                "needs_onboarding": not has_subscription,
            }
        except Exception as e:
            logger.error("[SUBSCRIPTION] error getting subscription status: %s", e)
            return {
                "has_subscription": False,
                "has_customer_id": False,
                "needs_onboarding": True,
            }

    async def get_subscriptions(self, user: Any) -> Dict[str, Any]:
        """First page of the user's subscriptions.

        When the customers table has no row yet (the customer webhook has not
        been processed), the customer is searched in Paddle by email and saved.
        """
        try:
            customer_id = await self.get_customer_id(user)

            if not customer_id:
                logger.info("[SUBSCRIPTION] no customer_id in database, searching Paddle by email")
                customer_id = await self._find_paddle_customer_by_email(user)
                if not customer_id:
                    return {"data": [], "has_more": False, "total_records": 0}

            page = await self._require_paddle().list_subscriptions([customer_id], per_page=20)
            logger.info("[SUBSCRIPTION] found %s subscription(s) for %s", len(page.items), customer_id)
            return {
                "data": page.items,
                "has_more": page.has_more,
                "total_records": page.estimated_total,
            }
        except Exception as e:
            logger.error("[SUBSCRIPTION] error fetching subscriptions: %s", e)
            return {"error": SUBSCRIPTIONS_ERROR_MESSAGE}

    async def _find_paddle_customer_by_email(self, user: Any) -> str:
        email = self.user_email(user)
        if not email:
            return ""

        try:
            page = await self._require_paddle().list_customers([email], per_page=1)
        except Exception as e:
            logger.error("[SUBSCRIPTION] Paddle customer search failed: %s", e)
            return ""

        if not page.items:
            logger.info("[SUBSCRIPTION] no Paddle customer for %s", email)
            return ""

        customer_id = page.items[0].get("id") or ""
        if customer_id:
            try:
                await self.db_helper.upsert_customer(customer_id, email, getattr(user, "id", None))
            except Exception as e:
                # the id is still usable for this request
                logger.warning("[SUBSCRIPTION] failed to save customer %s: %s", customer_id, e)
        return customer_id

    async def validate_extension_access(self, user: Any) -> Dict[str, Any]:
        """Access decision for the browser extension. Paddle errors propagate.

        Keys use the camelCase names the extension reads.
        """

        customer_id = await self.get_customer_id(user)
        if not customer_id:
            return {
                "isActive": False,
                "reason": "no_customer",
                "message": "No subscription found. Start your free trial!",
            }

        page = await self._require_paddle().list_subscriptions([customer_id], per_page=5)
        active = next((sub for sub in page.items if is_active_status(sub.get("status"))), None)

        if active is None:
            return {
                "isActive": False,
                "reason": "no_active_subscription",
                "message": "Subscription expired. Renew to continue using ColorKit.",
            }

        status = active.get("status")
        trialing = status == "trialing"
        return {
            "isActive": True,
            "status": status,
            "trialEnding": (active.get("current_billing_period") or {}).get("ends_at") if trialing else None,
            "message": "Free trial active" if trialing else "Subscription active",
        }
