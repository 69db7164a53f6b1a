"""
Paddle webhook event processor

Dispatches verified Paddle Billing notifications by event type:
- subscription.created / updated / canceled -> persist subscription, link push
  registrations to the customer, push lock/unlock to the extension
- customer.created / updated -> persist customer linked to the Supabase user
- transaction.completed -> make sure the customer row exists
"""
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from core.interfaces import IDatabaseHelper, IPushService, IWebhookProcessor
from schemas import CustomerData, SubscriptionData, TransactionData, WebhookEvent
from services.paddle_billing_client import PaddleBillingClient
from services.push_service import PUSH_SUBSCRIPTION_CANCELLED, PUSH_SUBSCRIPTION_UPDATED
from services.subscription_service import ACTIVE_SUBSCRIPTION_STATUSES, INACTIVE_SUBSCRIPTION_STATUSES

logger = logging.getLogger(__name__)

HandlerResult = Dict[str, Any]
HandlerFunc = Callable[["WebhookProcessor", WebhookEvent], Awaitable[HandlerResult]]


class WebhookProcessor(IWebhookProcessor):
    """Single entry point for verified Paddle events."""

    def __init__(
        self,
        db_helper: IDatabaseHelper,
        paddle_client: Optional[PaddleBillingClient] = None,
        push_service: Optional[IPushService] = None,
    ):
        self.db_helper = db_helper
        self.paddle = paddle_client
        self.push_service = push_service

    async def process_event(self, event: WebhookEvent) -> Optional[HandlerResult]:
        event_type = (event.event_type or "").strip().lower()
        logger.info("[WEBHOOK] processing event type=%s id=%s", event_type, event.event_id)

        handler = HANDLER_MAP.get(event_type)
        if handler is None:
            logger.info("[WEBHOOK] unhandled event type: %s", event.event_type)
            return None

        return await handler(self, event)

    async def update_subscription_data(self, event: WebhookEvent) -> HandlerResult:
        subscription = SubscriptionData.model_validate(event.data)
        logger.info(
            "[WEBHOOK] subscription event=%s id=%s customer=%s status=%s",
            event.event_type,
            subscription.id,
            subscription.customer_id,
            subscription.status,
        )

        await self.ensure_customer_exists(subscription.customer_id)

        first_price = subscription.items[0].price if subscription.items else None
        record = {
            "subscription_id": subscription.id,
            "subscription_status": subscription.status,
            "price_id": (first_price.id if first_price else None) or "",
            "product_id": (first_price.product_id if first_price else None) or "",
            "scheduled_change": subscription.scheduled_change.effective_at if subscription.scheduled_change else None,
            "customer_id": subscription.customer_id,
        }
        # Paddle retries the webhook when this raises
        await self.db_helper.upsert_subscription(record)
        logger.info("[WEBHOOK] subscription %s saved", subscription.id)

        linked = await self.link_push_registrations(subscription.customer_id)
        push = await self._notify_extension(subscription.customer_id, subscription.status)

        return {
            "category": "subscription",
            "subscription_id": subscription.id,
            "status": subscription.status,
            "linked": linked,
            "push": push,
        }

    async def update_customer_data(self, event: WebhookEvent) -> HandlerResult:
        customer = CustomerData.model_validate(event.data)
        logger.info("[WEBHOOK] customer event=%s id=%s", event.event_type, customer.id)

        user_id = await self.db_helper.find_user_id_by_email(customer.email)
        if user_id:
            logger.info("[WEBHOOK] matched customer %s to user %s", customer.id, user_id)
        else:
            logger.info("[WEBHOOK] no user for customer %s, saving without user_id", customer.id)

        await self.db_helper.upsert_customer(customer.id, customer.email or "", user_id)
        logger.info("[WEBHOOK] customer %s saved", customer.id)

        return {"category": "customer", "customer_id": customer.id, "user_id": user_id}

    async def handle_transaction_completed(self, event: WebhookEvent) -> HandlerResult:
        transaction = TransactionData.model_validate(event.data)
        logger.info("[WEBHOOK] transaction.completed id=%s customer=%s", transaction.id, transaction.customer_id)

        if not transaction.customer_id:
            logger.warning("[WEBHOOK] transaction %s has no customer id, skipping", transaction.id)
            return {"category": "transaction", "transaction_id": transaction.id, "customer_ensured": False}

        # backup path when customer.created has not been delivered first
        await self.ensure_customer_exists(transaction.customer_id)
        return {"category": "transaction", "transaction_id": transaction.id, "customer_ensured": True}

    async def ensure_customer_exists(self, customer_id: str) -> bool:
        """Insert the customer fetched from Paddle when it is missing locally.

        Failures are logged and swallowed so the calling event still persists.
        """
        existing = await self.db_helper.get_customer(customer_id)
        if existing:
            return True

        logger.info("[WEBHOOK] customer %s not found, fetching from Paddle", customer_id)
        try:
            if self.paddle is None:
                raise RuntimeError("Paddle client is not configured")

            customer = await self.paddle.get_customer(customer_id)
            email = customer.get("email") or ""
            user_id = await self.db_helper.find_user_id_by_email(email)
            await self.db_helper.insert_customer(customer_id, email, user_id)
            logger.info("[WEBHOOK] customer %s created (user=%s)", customer_id, user_id)
            return True
        except Exception as e:
            logger.error("[WEBHOOK] could not create customer %s, continuing without it: %s", customer_id, e)
            return False

    async def link_push_registrations(self, customer_id: str) -> Dict[str, int]:
        """Attach the customer id to push registrations made before purchase.

        The extension registers while the user has no customer yet, so rows are
        matched by comparing the owner's email with the customer's email.
        """
        linked = {"push_subscriptions": 0, "fcm_tokens": 0}

        customer = await self.db_helper.get_customer(customer_id)
        customer_email = (customer or {}).get("email")
        if not customer_email:
            logger.error("[WEBHOOK] no email for customer %s, push registrations not linked", customer_id)
            return linked

        try:
            push_rows = await self.db_helper.list_unlinked_push_subscriptions()
            fcm_rows = await self.db_helper.list_unlinked_fcm_tokens()
        except Exception as e:
            logger.error("[WEBHOOK] failed to query unlinked push registrations: %s", e)
            return linked

        email_cache: Dict[str, Optional[str]] = {}

        async def owner_matches(user_id: Optional[str]) -> bool:
            if not user_id:
                return False
            if user_id not in email_cache:
                email_cache[user_id] = await self.db_helper.get_user_email(user_id)
            return email_cache[user_id] == customer_email

        for row in push_rows:
            try:
                if await owner_matches(row.get("user_id")):
                    await self.db_helper.link_push_subscription(row["endpoint"], customer_id)
                    linked["push_subscriptions"] += 1
            except Exception as e:
                logger.warning("[WEBHOOK] failed to link push subscription for user %s: %s", row.get("user_id"), e)

        for row in fcm_rows:
            try:
                if await owner_matches(row.get("user_id")):
                    await self.db_helper.link_fcm_token(row["fcm_token"], customer_id)
                    linked["fcm_tokens"] += 1
            except Exception as e:
                logger.warning("[WEBHOOK] failed to link FCM token for user %s: %s", row.get("user_id"), e)

        if push_rows or fcm_rows:
            logger.info(
                "[WEBHOOK] linked %s/%s push subscriptions and %s/%s FCM tokens to %s",
                linked["push_subscriptions"],
                len(push_rows),
                linked["fcm_tokens"],
                len(fcm_rows),
                customer_id,
            )
        return linked

    async def _notify_extension(self, customer_id: str, status: str) -> Optional[Dict[str, Any]]:
        status = (status or "").lower()
        if status in ACTIVE_SUBSCRIPTION_STATUSES:
            push_type = PUSH_SUBSCRIPTION_UPDATED
        elif status in INACTIVE_SUBSCRIPTION_STATUSES:
            push_type = PUSH_SUBSCRIPTION_CANCELLED
        else:
            logger.info("[WEBHOOK] status %s does not trigger a push", status)
            return None

        if self.push_service is None:
            logger.warning("[WEBHOOK] push service unavailable, extension will pick up %s on next check", push_type)
            return None

        try:
            result = await self.push_service.send_push_to_customer(customer_id, push_type)
        except Exception as e:
            # the extension falls back to its periodic validation
            logger.error("[WEBHOOK] %s push failed for %s: %s", push_type, customer_id, e)
            return {"type": push_type, "error": str(e)}

        if result.get("sent", 0) == 0 and result.get("failed", 0) == 0:
            logger.warning("[WEBHOOK] no push registrations for customer %s", customer_id)
        return {"type": push_type, **result}


SUBSCRIPTION_EVENTS = {
    "subscription.created",
    "subscription.updated",
    "subscription.canceled",
}

CUSTOMER_EVENTS = {
    "customer.created",
    "customer.updated",
}

HANDLER_MAP: Dict[str, HandlerFunc] = {
    **{name: WebhookProcessor.update_subscription_data for name in SUBSCRIPTION_EVENTS},
    **{name: WebhookProcessor.update_customer_data for name in CUSTOMER_EVENTS},
    "transaction.completed": WebhookProcessor.handle_transaction_completed,
}
