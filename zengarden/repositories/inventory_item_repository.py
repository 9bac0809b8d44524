from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .base import BaseRepository
from .db import InventoryItemRow
from .entities import InventoryItemEntity
from .errors import InvalidQuantityError, RecordNotFoundError


def _check_positive(quantity: int):
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
        raise InvalidQuantityError(f"Quantity must be a positive integer, got {quantity!r}")


class InventoryItemRepository(BaseRepository):
    """
    Durable item stacks keyed by (owner, identifier).

    Every mutation locks its target row (SELECT ... FOR UPDATE) before computing the new
    state from the locked value, so concurrent deltas on one row never lose an update.
    A quantity that reaches zero deletes the row.
    """

    # --- Locking ---

    @staticmethod
    def _lock_by_id(s: Session, item_id: str) -> InventoryItemRow:
        stmt = (select(InventoryItemRow).where(InventoryItemRow.id == item_id)
                .with_for_update().execution_options(populate_existing=True))
        row = s.execute(stmt).scalar_one_or_none()
        if row is None:
            raise RecordNotFoundError(f"InventoryItem not found for id: {item_id}")
        return row

    @staticmethod
    def _lock_by_owner(s: Session, owner: str, identifier: str) -> InventoryItemRow:
        stmt = (select(InventoryItemRow)
                .where(InventoryItemRow.owner == owner, InventoryItemRow.identifier == identifier)
                .with_for_update().execution_options(populate_existing=True))
        row = s.execute(stmt).scalar_one_or_none()
        if row is None:
            raise RecordNotFoundError(f"InventoryItem not found for owner {owner} and identifier {identifier}")
        return row

    @staticmethod
    def _apply_delta(s: Session, row: InventoryItemRow, delta: int) -> InventoryItemEntity:
        if not isinstance(delta, int) or isinstance(delta, bool):
            raise InvalidQuantityError(f"Quantity change must be an integer, got {delta!r}")

        new_quantity = row.quantity + delta
        if new_quantity < 0:
            raise InvalidQuantityError(
                f"Final quantity cannot be negative: {row.identifier} has {row.quantity}, change {delta}")

        if new_quantity == 0:
            entity = row.to_entity()
            s.delete(row)
            s.flush()
            return InventoryItemEntity(entity.id, entity.owner, entity.identifier, 0)

        row.quantity = new_quantity
        s.flush()
        return row.to_entity()

    # --- Reads ---

    def get_inventory_item_by_id(self, item_id: str, session: Optional[Session] = None) -> Optional[InventoryItemEntity]:
        with self._scope(session) as s:
            row = s.get(InventoryItemRow, item_id)
            return row.to_entity() if row else None

    def get_all_inventory_items_by_owner_id(self, owner: str,
                                            session: Optional[Session] = None) -> List[InventoryItemEntity]:
        with self._scope(session) as s:
            rows = s.execute(select(InventoryItemRow).where(InventoryItemRow.owner == owner)).scalars().all()
            return [row.to_entity() for row in rows]

    def get_inventory_item_by_owner_id(self, owner: str, identifier: str,
                                       session: Optional[Session] = None) -> Optional[InventoryItemEntity]:
        with self._scope(session) as s:
            stmt = select(InventoryItemRow).where(
                InventoryItemRow.owner == owner, InventoryItemRow.identifier == identifier)
            row = s.execute(stmt).scalar_one_or_none()
            return row.to_entity() if row else None

    # --- Mutations ---

    def create_inventory_item(self, owner: str, identifier: str, quantity: int, item_id: Optional[str] = None,
                              session: Optional[Session] = None) -> InventoryItemEntity:
        """Inserts a new stack. Fails with IntegrityError if the owner already holds this identifier."""

        _check_positive(quantity)
        with self._scope(session) as s:
            row = InventoryItemRow(owner=owner, identifier=identifier, quantity=quantity)
            if item_id:
                row.id = item_id
            s.add(row)
            s.flush()
            return row.to_entity()

    def add_inventory_item(self, owner: str, identifier: str, quantity: int,
                           session: Optional[Session] = None) -> InventoryItemEntity:
        """Merges into the owner's existing stack of identifier, or creates it."""

        _check_positive(quantity)
        with self._scope(session) as s:
            existing = self.get_inventory_item_by_owner_id(owner, identifier, session=s)
            if existing is not None:
                return self.update_inventory_item_quantity(existing.id, quantity, session=s)

            try:
                # Savepoint: a concurrent insert of the same stack turns into a merge.
                with s.begin_nested():
                    row = InventoryItemRow(owner=owner, identifier=identifier, quantity=quantity)
                    s.add(row)
                    s.flush()
                return row.to_entity()
            except IntegrityError:
                return self._apply_delta(s, self._lock_by_owner(s, owner, identifier), quantity)

    def set_inventory_item_quantity(self, item_id: str, new_quantity: int,
                                    session: Optional[Session] = None) -> InventoryItemEntity:
        """Overwrites the quantity. Setting zero deletes the row."""

        if not isinstance(new_quantity, int) or isinstance(new_quantity, bool) or new_quantity < 0:
            raise InvalidQuantityError(f"Quantity cannot be {new_quantity!r}")

        with self._scope(session) as s:
            row = self._lock_by_id(s, item_id)
            return self._apply_delta(s, row, new_quantity - row.quantity)

    def update_inventory_item_quantity(self, item_id: str, quantity_delta: int,
                                       session: Optional[Session] = None) -> InventoryItemEntity:
        """
        Adds quantity_delta to the locked row. A result of zero deletes the row and returns
        its final state with quantity 0; a negative result raises and changes nothing.
        """

        with self._scope(session) as s:
            return self._apply_delta(s, self._lock_by_id(s, item_id), quantity_delta)

    def update_inventory_item_quantity_by_owner_id(self, owner: str, identifier: str, quantity_delta: int,
                                                   session: Optional[Session] = None) -> InventoryItemEntity:
        with self._scope(session) as s:
            return self._apply_delta(s, self._lock_by_owner(s, owner, identifier), quantity_delta)

    def delete_inventory_item_by_id(self, item_id: str, session: Optional[Session] = None) -> InventoryItemEntity:
        """Returns the deleted row as it was."""

        with self._scope(session) as s:
            row = self._lock_by_id(s, item_id)
            entity = row.to_entity()
            s.delete(row)
            s.flush()
            return entity

    def delete_inventory_item_by_owner_id(self, owner: str, identifier: str,
                                          session: Optional[Session] = None) -> InventoryItemEntity:
        with self._scope(session) as s:
            row = self._lock_by_owner(s, owner, identifier)
            entity = row.to_entity()
            s.delete(row)
            s.flush()
            return entity

    def delete_all_inventory_items_by_owner_id(self, owner: str, session: Optional[Session] = None) -> int:
        with self._scope(session) as s:
            stmt = select(InventoryItemRow).where(InventoryItemRow.owner == owner).with_for_update()
            rows = s.execute(stmt).scalars().all()
            for row in rows:
                s.delete(row)
            s.flush()
            return len(rows)
