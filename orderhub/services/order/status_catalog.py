# orderhub/services/order/status_catalog.py
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, List, Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from orderhub.core.exceptions import NotFoundError
from orderhub.models.order.order_status import OrderStatus
from orderhub.models.shared.enums import OrderStatusName


@dataclass(frozen=True)
class StatusEntry:
    id: int
    name: str
    description: Optional[str] = None
    color: Optional[str] = None


class StatusCatalog:
    """Read-only lookup of the order status catalog.

    Loaded once from the ``order_statuses`` table and shared between requests;
    nothing mutates it afterwards.
    """

    def __init__(self, entries: Iterable[StatusEntry]):
        entries = list(entries)
        self._by_id = MappingProxyType({entry.id: entry for entry in entries})
        self._by_name = MappingProxyType({entry.name: entry for entry in entries})

    @classmethod
    async def load(cls, session: AsyncSession) -> "StatusCatalog":
        result = await session.execute(select(OrderStatus).order_by(OrderStatus.id))
        catalog = cls(
            StatusEntry(id=row.id, name=row.name, description=row.description, color=row.color)
            for row in result.scalars().all()
        )
        missing = [name.value for name in OrderStatusName if name.value not in catalog._by_name]
        if missing:
            raise RuntimeError(f"Order status catalog is missing entries: {', '.join(missing)}")
        return catalog

    def get(self, status_id: int) -> StatusEntry:
        entry = self._by_id.get(status_id)
        if entry is None:
            raise NotFoundError(f"Order status {status_id} not found")
        return entry

    def by_name(self, name: Union[str, OrderStatusName]) -> StatusEntry:
        key = name.value if isinstance(name, OrderStatusName) else name
        entry = self._by_name.get(key)
        if entry is None:
            raise NotFoundError(f"Order status '{key}' not found")
        return entry

    def id_of(self, name: Union[str, OrderStatusName]) -> int:
        return self.by_name(name).id

    def name_of(self, status_id: int) -> str:
        return self.get(status_id).name

    def entries(self) -> List[StatusEntry]:
        return list(self._by_id.values())

    def __contains__(self, status_id: int) -> bool:
        return status_id in self._by_id

    def __len__(self) -> int:
        return len(self._by_id)
