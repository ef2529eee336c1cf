# orderhub/services/delivery/driver_notifier.py
import json
import logging
from datetime import datetime, timezone
from typing import Iterable

from orderhub.core.config import settings
from orderhub.core.redis import RedisClient, redis_client

logger = logging.getLogger(__name__)

MAX_QUEUED_NOTIFICATIONS = 50


class DriverNotifier:
    """Pushes "order ready" offers onto each driver's redis notification list"""

    def __init__(self, client: RedisClient = redis_client):
        self.client = client

    @staticmethod
    def queue_key(driver_id: int) -> str:
        return f"driver:{driver_id}:notifications"

    async def notify_order_ready(self, order, driver_ids: Iterable[int]) -> int:
        payload = json.dumps({
            "type": "order_ready",
            "order_id": order.id,
            "order_number": order.order_number,
            "restaurant_id": order.restaurant_id,
            "sent_at": datetime.now(timezone.utc).isoformat(),
        })
        sent = 0
        for driver_id in driver_ids:
            await self.client.push_capped(
                self.queue_key(driver_id), payload,
                MAX_QUEUED_NOTIFICATIONS, settings.DRIVER_NOTIFICATION_TTL_SECONDS,
            )
            sent += 1
        logger.info(f"Order {order.order_number} ready: notified {sent} driver(s)")
        return sent

    async def get_notifications(self, driver_id: int, limit: int = 20) -> list:
        raw = await self.client.read_list(self.queue_key(driver_id), limit)
        return [json.loads(item) for item in raw]
