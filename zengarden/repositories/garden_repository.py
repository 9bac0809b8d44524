from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from .base import BaseRepository
from .db import GardenRow, PlacedItemRow, PlotRow
from .entities import GardenEntity, PlotEntity
from .errors import InvalidQuantityError, RecordNotFoundError


class GardenRepository(BaseRepository):
    """
    Durable gardens and their plots. Plots are addressed by (garden id, row index, column index);
    each plot owns one placed_items row.
    """

    @staticmethod
    def _lock_garden(s: Session, garden_id: str) -> GardenRow:
        stmt = (select(GardenRow).where(GardenRow.id == garden_id)
                .with_for_update().execution_options(populate_existing=True))
        row = s.execute(stmt).scalar_one_or_none()
        if row is None:
            raise RecordNotFoundError(f"Garden not found for id: {garden_id}")
        return row

    @staticmethod
    def _lock_plot(s: Session, garden_id: str, row_index: int, col_index: int) -> PlotRow:
        stmt = (select(PlotRow)
                .where(PlotRow.owner == garden_id, PlotRow.row_index == row_index, PlotRow.col_index == col_index)
                .with_for_update().execution_options(populate_existing=True))
        row = s.execute(stmt).scalar_one_or_none()
        if row is None:
            raise RecordNotFoundError(f"Plot not found at ({row_index}, {col_index}) in garden {garden_id}")
        return row

    # --- Reads ---

    def get_garden_by_owner(self, user_id: str, session: Optional[Session] = None) -> Optional[GardenEntity]:
        with self._scope(session) as s:
            row = s.execute(select(GardenRow).where(GardenRow.owner == user_id)).scalar_one_or_none()
            return row.to_entity() if row else None

    def get_plots(self, garden_id: str, session: Optional[Session] = None) -> List[PlotEntity]:
        with self._scope(session) as s:
            stmt = (select(PlotRow).where(PlotRow.owner == garden_id)
                    .order_by(PlotRow.row_index, PlotRow.col_index))
            return [row.to_entity() for row in s.execute(stmt).scalars().all()]

    def get_plot(self, garden_id: str, row_index: int, col_index: int,
                 session: Optional[Session] = None) -> Optional[PlotEntity]:
        with self._scope(session) as s:
            stmt = select(PlotRow).where(
                PlotRow.owner == garden_id, PlotRow.row_index == row_index, PlotRow.col_index == col_index)
            row = s.execute(stmt).scalar_one_or_none()
            return row.to_entity() if row else None

    # --- Mutations ---

    def create_garden(self, user_id: str, rows: int, cols: int, garden_id: Optional[str] = None,
                      session: Optional[Session] = None) -> GardenEntity:
        """Creates the garden row only; plots are added with create_plot."""

        if rows < 1 or cols < 1:
            raise InvalidQuantityError(f"Invalid garden size: {rows}x{cols}")

        with self._scope(session) as s:
            row = GardenRow(owner=user_id, rows=rows, cols=cols)
            if garden_id:
                row.id = garden_id
            s.add(row)
            s.flush()
            return row.to_entity()

    def create_plot(self, garden_id: str, row_index: int, col_index: int, plant_time: float,
                    plot_id: Optional[str] = None, session: Optional[Session] = None) -> PlotEntity:
        with self._scope(session) as s:
            row = PlotRow(owner=garden_id, row_index=row_index, col_index=col_index, plant_time=plant_time)
            if plot_id:
                row.id = plot_id
            s.add(row)
            s.flush()
            return row.to_entity()

    def set_plot_plant_time(self, garden_id: str, row_index: int, col_index: int, plant_time: float,
                            session: Optional[Session] = None) -> PlotEntity:
        with self._scope(session) as s:
            row = self._lock_plot(s, garden_id, row_index, col_index)
            row.plant_time = plant_time
            s.flush()
            return row.to_entity()

    def resize_garden(self, garden_id: str, rows: int, cols: int, ground_identifier: str, now: float,
                      session: Optional[Session] = None) -> GardenEntity:
        """
        Deletes plots (and their placed items) outside rows x cols and fills new cells with Ground.
        Plots inside the new bounds keep their contents.
        """

        if rows < 1 or cols < 1:
            raise InvalidQuantityError(f"Invalid garden size: {rows}x{cols}")

        with self._scope(session) as s:
            garden = self._lock_garden(s, garden_id)
            plots = s.execute(select(PlotRow).where(PlotRow.owner == garden_id).with_for_update()).scalars().all()

            occupied = set()
            for plot in plots:
                if plot.row_index >= rows or plot.col_index >= cols:
                    placed = s.execute(select(PlacedItemRow).where(PlacedItemRow.owner == plot.id)).scalar_one_or_none()
                    if placed is not None:
                        s.delete(placed)
                        s.flush()
                    s.delete(plot)
                else:
                    occupied.add((plot.row_index, plot.col_index))
            s.flush()

            for row_index in range(rows):
                for col_index in range(cols):
                    if (row_index, col_index) in occupied:
                        continue
                    new_plot = PlotRow(owner=garden_id, row_index=row_index, col_index=col_index, plant_time=now)
                    s.add(new_plot)
                    s.flush()
                    s.add(PlacedItemRow(owner=new_plot.id, identifier=ground_identifier, status="empty"))

            garden.rows = rows
            garden.cols = cols
            s.flush()
            return garden.to_entity()

    def swap_plots(self, garden_id: str, first: Tuple[int, int], second: Tuple[int, int],
                   session: Optional[Session] = None) -> Tuple[PlotEntity, PlotEntity]:
        """Exchanges the coordinates of two plots, carrying their contents with them."""

        with self._scope(session) as s:
            first_plot = self._lock_plot(s, garden_id, *first)
            second_plot = self._lock_plot(s, garden_id, *second)
            if first_plot.id == second_plot.id:
                return first_plot.to_entity(), second_plot.to_entity()

            # Park one plot off-grid so the unique position constraint holds at every flush.
            first_plot.row_index, first_plot.col_index = -1, -1
            s.flush()
            second_plot.row_index, second_plot.col_index = first
            s.flush()
            first_plot.row_index, first_plot.col_index = second
            s.flush()
            return first_plot.to_entity(), second_plot.to_entity()

    def delete_garden(self, garden_id: str, session: Optional[Session] = None) -> GardenEntity:
        """Deletes the garden with every plot and placed item in it."""

        with self._scope(session) as s:
            garden = self._lock_garden(s, garden_id)
            entity = garden.to_entity()
            plots = s.execute(select(PlotRow).where(PlotRow.owner == garden_id).with_for_update()).scalars().all()
            for plot in plots:
                placed = s.execute(select(PlacedItemRow).where(PlacedItemRow.owner == plot.id)).scalar_one_or_none()
                if placed is not None:
                    s.delete(placed)
            s.flush()
            for plot in plots:
                s.delete(plot)
            s.flush()
            s.delete(garden)
            s.flush()
            return entity
