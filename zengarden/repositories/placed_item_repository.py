from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from .base import BaseRepository
from .db import PlacedItemRow
from .entities import PlacedItemEntity
from .errors import RecordNotFoundError, RepositoryError


class PlacedItemRepository(BaseRepository):
    """Durable plot contents. Each plot owns exactly one placed item, replaced rather than deleted."""

    @staticmethod
    def _lock_by_id(s: Session, item_id: str) -> PlacedItemRow:
        stmt = (select(PlacedItemRow).where(PlacedItemRow.id == item_id)
                .with_for_update().execution_options(populate_existing=True))
        row = s.execute(stmt).scalar_one_or_none()
        if row is None:
            raise RecordNotFoundError(f"PlacedItem not found for id: {item_id}")
        return row

    @staticmethod
    def _lock_by_plot_id(s: Session, plot_id: str) -> PlacedItemRow:
        stmt = (select(PlacedItemRow).where(PlacedItemRow.owner == plot_id)
                .with_for_update().execution_options(populate_existing=True))
        row = s.execute(stmt).scalar_one_or_none()
        if row is None:
            raise RecordNotFoundError(f"PlacedItem not found for plotId: {plot_id}")
        return row

    @staticmethod
    def _replace(s: Session, row: PlacedItemRow, identifier: str, status: Optional[str],
                 expected_identifier: Optional[str] = None) -> PlacedItemEntity:
        if expected_identifier is not None and row.identifier != expected_identifier:
            raise RepositoryError(
                f"PlacedItem {row.id} holds {row.identifier}, expected {expected_identifier}")
        row.identifier = identifier
        if status is not None:
            row.status = status
        s.flush()
        return row.to_entity()

    def get_placed_item_by_id(self, item_id: str, session: Optional[Session] = None) -> Optional[PlacedItemEntity]:
        with self._scope(session) as s:
            row = s.get(PlacedItemRow, item_id)
            return row.to_entity() if row else None

    def get_placed_item_by_plot_id(self, plot_id: str,
                                   session: Optional[Session] = None) -> Optional[PlacedItemEntity]:
        with self._scope(session) as s:
            row = s.execute(select(PlacedItemRow).where(PlacedItemRow.owner == plot_id)).scalar_one_or_none()
            return row.to_entity() if row else None

    def create_placed_item(self, plot_id: str, identifier: str, status: str = "", item_id: Optional[str] = None,
                           session: Optional[Session] = None) -> PlacedItemEntity:
        with self._scope(session) as s:
            row = PlacedItemRow(owner=plot_id, identifier=identifier, status=status)
            if item_id:
                row.id = item_id
            s.add(row)
            s.flush()
            return row.to_entity()

    def replace_placed_item_by_id(self, item_id: str, new_identifier: str, new_status: Optional[str] = None,
                                  expected_identifier: Optional[str] = None,
                                  session: Optional[Session] = None) -> PlacedItemEntity:
        """
        Swaps the template of a locked placed item; the status is kept unless a new one is given.
        With expected_identifier the replace only happens if the row still holds that template.
        """
        with self._scope(session) as s:
            return self._replace(s, self._lock_by_id(s, item_id), new_identifier, new_status, expected_identifier)

    def replace_placed_item_by_plot_id(self, plot_id: str, new_identifier: str, new_status: Optional[str] = None,
                                       expected_identifier: Optional[str] = None,
                                       session: Optional[Session] = None) -> PlacedItemEntity:
        with self._scope(session) as s:
            return self._replace(s, self._lock_by_plot_id(s, plot_id), new_identifier, new_status,
                                 expected_identifier)

    def set_placed_item_status_by_id(self, item_id: str, new_status: str,
                                     session: Optional[Session] = None) -> PlacedItemEntity:
        with self._scope(session) as s:
            row = self._lock_by_id(s, item_id)
            return self._replace(s, row, row.identifier, new_status)

    def set_placed_item_status_by_plot_id(self, plot_id: str, new_status: str,
                                          session: Optional[Session] = None) -> PlacedItemEntity:
        with self._scope(session) as s:
            row = self._lock_by_plot_id(s, plot_id)
            return self._replace(s, row, row.identifier, new_status)

    def delete_placed_item_by_id(self, item_id: str, session: Optional[Session] = None) -> PlacedItemEntity:
        with self._scope(session) as s:
            row = self._lock_by_id(s, item_id)
            entity = row.to_entity()
            s.delete(row)
            s.flush()
            return entity
