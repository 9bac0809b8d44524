from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from .base import BaseRepository
from .db import InventoryRow
from .entities import InventoryEntity
from .errors import InsufficientFundsError, InvalidQuantityError, RecordNotFoundError


class InventoryRepository(BaseRepository):
    """Durable gold balances, one inventory row per user."""

    @staticmethod
    def _lock(s: Session, inventory_id: str) -> InventoryRow:
        stmt = (select(InventoryRow).where(InventoryRow.id == inventory_id)
                .with_for_update().execution_options(populate_existing=True))
        row = s.execute(stmt).scalar_one_or_none()
        if row is None:
            raise RecordNotFoundError(f"Inventory not found for id: {inventory_id}")
        return row

    def get_inventory_by_id(self, inventory_id: str, session: Optional[Session] = None) -> Optional[InventoryEntity]:
        with self._scope(session) as s:
            row = s.get(InventoryRow, inventory_id)
            return row.to_entity() if row else None

    def get_inventory_by_owner(self, user_id: str, session: Optional[Session] = None) -> Optional[InventoryEntity]:
        with self._scope(session) as s:
            row = s.execute(select(InventoryRow).where(InventoryRow.owner == user_id)).scalar_one_or_none()
            return row.to_entity() if row else None

    def create_inventory(self, user_id: str, gold: int, inventory_id: Optional[str] = None,
                         session: Optional[Session] = None) -> InventoryEntity:
        if not isinstance(gold, int) or isinstance(gold, bool) or gold < 0:
            raise InvalidQuantityError(f"Gold cannot be {gold!r}")

        with self._scope(session) as s:
            row = InventoryRow(owner=user_id, gold=gold)
            if inventory_id:
                row.id = inventory_id
            s.add(row)
            s.flush()
            return row.to_entity()

    def update_gold(self, inventory_id: str, delta: int, session: Optional[Session] = None) -> InventoryEntity:
        """Applies a gold delta to the locked balance. A result below zero raises and changes nothing."""

        if not isinstance(delta, int) or isinstance(delta, bool):
            raise InvalidQuantityError(f"Gold change must be an integer, got {delta!r}")

        with self._scope(session) as s:
            row = self._lock(s, inventory_id)
            if row.gold + delta < 0:
                raise InsufficientFundsError(f"Inventory {inventory_id} has {row.gold} gold, cannot apply {delta}")
            row.gold += delta
            s.flush()
            return row.to_entity()

    def set_gold(self, inventory_id: str, gold: int, session: Optional[Session] = None) -> InventoryEntity:
        if not isinstance(gold, int) or isinstance(gold, bool) or gold < 0:
            raise InvalidQuantityError(f"Gold cannot be {gold!r}")

        with self._scope(session) as s:
            row = self._lock(s, inventory_id)
            row.gold = gold
            s.flush()
            return row.to_entity()

    def delete_inventory(self, inventory_id: str, session: Optional[Session] = None) -> InventoryEntity:
        """Deletes the gold row only; the caller removes the items it owns."""

        with self._scope(session) as s:
            row = self._lock(s, inventory_id)
            entity = row.to_entity()
            s.delete(row)
            s.flush()
            return entity
