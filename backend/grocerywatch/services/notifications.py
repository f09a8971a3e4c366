"""Price-drop notification fan-out.

The core hands detected drops to a NotificationDispatcher; which drops
reach which subscriber (store, category and threshold filters) is decided
here. TelegramDispatcher sends through the Telegram Bot API ``sendMessage``
method over HTTP.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional, Protocol, Sequence

import httpx
import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from grocerywatch.config import settings
from grocerywatch.core.exceptions import NotFoundError
from grocerywatch.models.subscription import Subscription
from grocerywatch.repositories import SubscriptionRepository
from grocerywatch.scrapers.utils.retry import http_retry
from grocerywatch.services.price_analysis import PriceDrop

logger = structlog.get_logger(__name__)

# Keeps a single alert message readable
MAX_DROPS_PER_MESSAGE = 10

_CENTS = Decimal("0.01")


class NotificationDispatcher(Protocol):
    """Consumes detected price drops."""

    async def dispatch(self, drops: Sequence[PriceDrop]) -> None:
        ...


def filter_drops_for_subscription(
    drops: Sequence[PriceDrop], subscription: Subscription
) -> List[PriceDrop]:
    """Drops matching a subscription's threshold, store and category filters.

    Empty filter lists match everything. Category filters match either the
    category id or the category code. At most MAX_DROPS_PER_MESSAGE drops
    are returned, in input order.
    """
    threshold = Decimal(subscription.min_drop_percentage or 0)
    store_filters = set(subscription.store_filters or [])
    category_filters = set(subscription.category_filters or [])

    matched = []
    for drop in drops:
        if drop.drop_percentage < threshold:
            continue
        if store_filters and drop.store_code not in store_filters:
            continue
        if category_filters:
            keys = {str(drop.category_id) if drop.category_id else None, drop.category_code}
            if not keys & category_filters:
                continue
        matched.append(drop)
        if len(matched) >= MAX_DROPS_PER_MESSAGE:
            break
    return matched


def format_price_drop_message(drops: Sequence[PriceDrop]) -> str:
    lines = ["🏷️ Price Drop Alert!", ""]
    for drop in drops:
        lines.append(f"{drop.product_name} - {drop.store_code}")
        lines.append(
            f"Was: ${drop.previous_price.quantize(_CENTS, ROUND_HALF_UP)}"
            f" → Now: ${drop.current_price.quantize(_CENTS, ROUND_HALF_UP)}"
        )
        lines.append(
            f"💰 Save {drop.drop_percentage.quantize(Decimal('1'), ROUND_HALF_UP)}%"
            f" (${drop.drop_amount.quantize(_CENTS, ROUND_HALF_UP)})"
        )
        lines.append("")
    return "\n".join(lines).rstrip() + "\n"


class TelegramDispatcher:
    """Sends each active subscriber the drops that pass their filters.

    A failed send to one chat is logged and the fan-out continues.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        client: Optional[httpx.AsyncClient] = None,
        bot_token: Optional[str] = None,
        enabled: Optional[bool] = None,
        api_url: Optional[str] = None,
    ):
        self.session_factory = session_factory
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=settings.SCRAPER_TIMEOUT_SECONDS)
        self.bot_token = bot_token if bot_token is not None else settings.TELEGRAM_BOT_TOKEN
        self.enabled = settings.TELEGRAM_ENABLED if enabled is None else enabled
        self.api_url = (api_url or settings.TELEGRAM_API_URL).rstrip("/")
        self.logger = logger.bind(service="telegram_dispatcher")

    async def dispatch(self, drops: Sequence[PriceDrop]) -> None:
        if not self.enabled:
            self.logger.info("notifications_disabled", drops=len(drops))
            return
        if not drops:
            return

        async with self.session_factory() as db:
            subscriptions = await SubscriptionRepository(db).list_active()

        sent = 0
        for subscription in subscriptions:
            matched = filter_drops_for_subscription(drops, subscription)
            if not matched:
                continue
            try:
                await self.send_message(subscription.chat_id, format_price_drop_message(matched))
                sent += 1
            except httpx.HTTPError as e:
                self.logger.error(
                    "notification_send_failed",
                    chat_id=subscription.chat_id,
                    error=str(e),
                )

        self.logger.info(
            "notifications_dispatched",
            drops=len(drops),
            subscriptions=len(subscriptions),
            sent=sent,
        )

    @http_retry
    async def send_message(self, chat_id: int, text: str) -> None:
        """POST one message to the Bot API ``sendMessage`` method."""
        response = await self.client.post(
            f"{self.api_url}/bot{self.bot_token}/sendMessage",
            json={"chat_id": chat_id, "text": text, "disable_web_page_preview": True},
        )
        response.raise_for_status()
        self.logger.debug("message_sent", chat_id=chat_id)

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()


class SubscriptionService:
    """Subscribe, unsubscribe and tune alert settings for a chat."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.subscriptions = SubscriptionRepository(db)
        self.logger = logger.bind(service="subscription_service")

    async def subscribe(
        self,
        chat_id: int,
        username: Optional[str] = None,
        first_name: Optional[str] = None,
    ) -> Subscription:
        """Create or reactivate the chat's subscription."""
        subscription = await self.subscriptions.get_by_chat_id(chat_id)
        if subscription is None:
            subscription = Subscription(
                chat_id=chat_id,
                min_drop_percentage=settings.TELEGRAM_DEFAULT_MIN_DROP_PERCENTAGE,
                store_filters=[],
                category_filters=[],
            )
        if username:
            subscription.username = username
        if first_name:
            subscription.first_name = first_name
        subscription.is_active = True

        await self.subscriptions.save(subscription)
        await self.db.commit()
        self.logger.info("subscribed", chat_id=chat_id)
        return subscription

    async def unsubscribe(self, chat_id: int) -> bool:
        """Deactivate the chat's subscription, keeping its settings.

        Returns:
            False if the chat never subscribed
        """
        subscription = await self.subscriptions.get_by_chat_id(chat_id)
        if subscription is None:
            return False
        subscription.is_active = False
        await self.db.commit()
        self.logger.info("unsubscribed", chat_id=chat_id)
        return True

    async def update_settings(
        self,
        chat_id: int,
        min_drop_percentage: Optional[int] = None,
        store_filters: Optional[List[str]] = None,
        category_filters: Optional[List[str]] = None,
    ) -> Subscription:
        """Change only the settings that are passed.

        Raises:
            NotFoundError: If the chat has no subscription
            ValueError: If min_drop_percentage is outside 0-100
        """
        subscription = await self.subscriptions.get_by_chat_id(chat_id)
        if subscription is None:
            raise NotFoundError("Subscription", str(chat_id))

        if min_drop_percentage is not None:
            if not 0 <= min_drop_percentage <= 100:
                raise ValueError("min_drop_percentage must be between 0 and 100")
            subscription.min_drop_percentage = min_drop_percentage
        if store_filters is not None:
            subscription.store_filters = list(store_filters)
        if category_filters is not None:
            subscription.category_filters = list(category_filters)

        await self.db.commit()
        self.logger.info("subscription_updated", chat_id=chat_id)
        return subscription
