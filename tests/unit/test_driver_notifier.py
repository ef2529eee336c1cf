import json
import pytest
from types import SimpleNamespace

from orderhub.services.delivery.driver_notifier import DriverNotifier, MAX_QUEUED_NOTIFICATIONS


class InMemoryLists:
    """Just enough of RedisClient for the notifier"""

    def __init__(self):
        self.lists = {}
        self.ttls = {}

    async def push_capped(self, key, value, max_length, ttl_seconds):
        items = [value] + self.lists.get(key, [])
        self.lists[key] = items[:max_length]
        self.ttls[key] = ttl_seconds
        return len(items)

    async def read_list(self, key, limit):
        return self.lists.get(key, [])[:limit]


def order(order_id):
    return SimpleNamespace(id=order_id, order_number=f"ORD-{order_id}", restaurant_id=3)


@pytest.mark.asyncio
class TestDriverNotifier:
    async def test_offers_go_to_each_driver(self):
        client = InMemoryLists()
        notifier = DriverNotifier(client)

        sent = await notifier.notify_order_ready(order(1), [10, 11])

        assert sent == 2
        assert set(client.lists) == {"driver:10:notifications", "driver:11:notifications"}
        payload = json.loads(client.lists["driver:10:notifications"][0])
        assert payload["type"] == "order_ready"
        assert payload["order_number"] == "ORD-1"
        assert client.ttls["driver:10:notifications"] > 0

    async def test_queue_is_capped_newest_first(self):
        notifier = DriverNotifier(InMemoryLists())
        for order_id in range(MAX_QUEUED_NOTIFICATIONS + 5):
            await notifier.notify_order_ready(order(order_id), [10])

        latest = await notifier.get_notifications(10, limit=MAX_QUEUED_NOTIFICATIONS + 5)

        assert len(latest) == MAX_QUEUED_NOTIFICATIONS
        assert latest[0]["order_id"] == MAX_QUEUED_NOTIFICATIONS + 4

    async def test_no_drivers(self):
        assert await DriverNotifier(InMemoryLists()).notify_order_ready(order(1), []) == 0
