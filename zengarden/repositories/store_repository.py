from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from .base import BaseRepository
from .db import StoreRow
from .entities import StoreEntity
from .errors import RecordNotFoundError


class StoreRepository(BaseRepository):
    """Durable store settings and restock timers. Store stock lives in inventory_items, owned by the store id."""

    @staticmethod
    def _lock(s: Session, store_row_id: str) -> StoreRow:
        stmt = (select(StoreRow).where(StoreRow.id == store_row_id)
                .with_for_update().execution_options(populate_existing=True))
        row = s.execute(stmt).scalar_one_or_none()
        if row is None:
            raise RecordNotFoundError(f"Store not found for id: {store_row_id}")
        return row

    def get_stores_by_owner(self, user_id: str, session: Optional[Session] = None) -> List[StoreEntity]:
        with self._scope(session) as s:
            rows = s.execute(select(StoreRow).where(StoreRow.owner == user_id)
                             .order_by(StoreRow.store_id)).scalars().all()
            return [row.to_entity() for row in rows]

    def get_store(self, user_id: str, store_id: int, session: Optional[Session] = None) -> Optional[StoreEntity]:
        with self._scope(session) as s:
            stmt = select(StoreRow).where(StoreRow.owner == user_id, StoreRow.store_id == store_id)
            row = s.execute(stmt).scalar_one_or_none()
            return row.to_entity() if row else None

    def create_store(self, user_id: str, store_id: int, store_name: str, buy_multiplier: float,
                     sell_multiplier: float, upgrade_multiplier: float, restock_time: float,
                     restock_interval: float, session: Optional[Session] = None) -> StoreEntity:
        with self._scope(session) as s:
            row = StoreRow(
                owner=user_id,
                store_id=store_id,
                store_name=store_name,
                buy_multiplier=buy_multiplier,
                sell_multiplier=sell_multiplier,
                upgrade_multiplier=upgrade_multiplier,
                restock_time=restock_time,
                restock_interval=restock_interval,
            )
            s.add(row)
            s.flush()
            return row.to_entity()

    def set_restock_time(self, store_row_id: str, restock_time: float,
                         session: Optional[Session] = None) -> StoreEntity:
        with self._scope(session) as s:
            row = self._lock(s, store_row_id)
            row.restock_time = restock_time
            s.flush()
            return row.to_entity()

    def delete_store(self, store_row_id: str, session: Optional[Session] = None) -> StoreEntity:
        """Deletes the store settings only; the caller removes the stock it owns."""

        with self._scope(session) as s:
            row = self._lock(s, store_row_id)
            entity = row.to_entity()
            s.delete(row)
            s.flush()
            return entity
