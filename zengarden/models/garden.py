import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from .assets import ItemSubtype, ItemTemplate
from .inventory import Inventory
from .items import InventoryItem, PlacedItem
from .responses import TransactionResponse

STATUS_EMPTY = "empty"
STATUS_PLANTED = "planted"
STATUS_PLACED = "placed"

Position = Tuple[int, int]


def _new_id() -> str:
    return str(uuid.uuid4())


def max_dimension(level: int) -> int:
    """Largest row or column count a gardener of this level may have."""
    return 5 + level // 5


@dataclass(eq=False)
class Plot:
    """
    One cell of a garden. Always holds exactly one PlacedItem; an empty plot holds Ground.
    Plots compare and hash by identity so they can key the garden's position index.
    """
    item: PlacedItem
    plant_time: float = field(default_factory=time.time)
    plot_id: str = field(default_factory=_new_id)

    def get_item(self) -> PlacedItem:
        return self.item

    def get_item_subtype(self) -> str:
        return self.item.item_data.subtype

    def get_plant_time(self) -> float:
        return self.plant_time

    def set_item(self, item: PlacedItem, now: Optional[float] = None):
        """Replaces the content and stamps the modification time."""
        self.item = item
        self.plant_time = time.time() if now is None else now

    def get_remaining_grow_time(self, now: Optional[float] = None) -> float:
        if self.get_item_subtype() != ItemSubtype.PLANT:
            return 0
        now = time.time() if now is None else now
        return max(0.0, self.plant_time + self.item.item_data.grow_time - now)

    def is_ready(self, now: Optional[float] = None, instant_grow: bool = False) -> bool:
        """True for a Plant whose grow time has elapsed."""
        if self.get_item_subtype() != ItemSubtype.PLANT:
            return False
        return instant_grow or self.get_remaining_grow_time(now) <= 0

    def use_item(self, catalog, replacement: PlacedItem, now: Optional[float] = None) -> TransactionResponse:
        """
        Removes the current content, puts replacement in its place and returns what the content turns into.
        Payload: {"original_item": PlacedItem, "new_template": ItemTemplate}
        """

        use_response = self.item.use(catalog)
        if not use_response.is_successful():
            return use_response

        self.set_item(replacement, now)
        return use_response

    def to_plain_object(self) -> Dict[str, Any]:
        return {"plot_id": self.plot_id, "item": self.item.to_plain_object(), "plant_time": self.plant_time}

    @classmethod
    def from_plain_object(cls, plain_object: Any, catalog, now: Optional[float] = None) -> "Plot":
        """Never raises. Unreadable plots, and plots holding the error template, come back as Ground."""

        now = time.time() if now is None else now
        if not isinstance(plain_object, dict):
            return cls.empty(catalog, now)

        item = PlacedItem.from_plain_object(plain_object.get("item"), catalog)
        if item.item_data.is_error:
            return cls.empty(catalog, now)

        plant_time = plain_object.get("plant_time")
        if not isinstance(plant_time, (int, float)) or isinstance(plant_time, bool):
            plant_time = now

        plot_id = plain_object.get("plot_id")
        if not isinstance(plot_id, str) or not plot_id:
            plot_id = _new_id()

        return cls(item, plant_time, plot_id)

    @classmethod
    def empty(cls, catalog, now: Optional[float] = None) -> "Plot":
        return cls(PlacedItem(catalog.get_ground_template(), STATUS_EMPTY), time.time() if now is None else now)


PlotRef = Union[Plot, Position]


class Garden:
    """
    A user's rectangular grid of plots.

    The grid is the source of truth. The plot -> (row, col) index is derived from it and rebuilt
    after every structural change (resize, swap), so lookups never see a stale position.
    """

    STARTING_ROWS = 5
    STARTING_COLS = 5

    def __init__(self, catalog, user_id: str = "Dummy User", rows: int = STARTING_ROWS, cols: int = STARTING_COLS,
                 plots: Optional[List[List[Plot]]] = None, now: Optional[float] = None):
        self.catalog = catalog
        self.user_id = user_id
        self.plots: List[List[Plot]] = []
        self.plot_positions: Dict[Plot, Position] = {}

        if plots:
            self.plots = [list(row) for row in plots]
        self._fill_with_empty_plots(max(1, rows), max(1, cols), now)

    # --- Grid bookkeeping ---

    def _fill_with_empty_plots(self, rows: int, cols: int, now: Optional[float] = None):
        for row_index in range(rows):
            if row_index >= len(self.plots):
                self.plots.append([])
            row = self.plots[row_index]
            while len(row) < cols:
                row.append(Plot.empty(self.catalog, now))
        self._rebuild_plot_positions()

    def _rebuild_plot_positions(self):
        self.plot_positions = {
            plot: (row_index, col_index)
            for row_index, row in enumerate(self.plots)
            for col_index, plot in enumerate(row)
        }

    def _is_valid_index(self, row: Any, col: Any) -> bool:
        if not isinstance(row, int) or not isinstance(col, int):
            return False
        return 0 <= row < len(self.plots) and 0 <= col < len(self.plots[row])

    def _resolve_plot(self, plot_ref: PlotRef) -> TransactionResponse:
        """Accepts a Plot belonging to this garden or a (row, col) pair. Payload: the Plot."""

        if isinstance(plot_ref, Plot):
            if plot_ref not in self.plot_positions:
                return TransactionResponse.fail("Could not find Plot in this Garden.")
            return TransactionResponse.ok(plot_ref)

        if isinstance(plot_ref, (tuple, list)) and len(plot_ref) == 2:
            row, col = plot_ref
            if not self._is_valid_index(row, col):
                return TransactionResponse.fail(f"Could not find Plot at ({row}, {col})")
            return TransactionResponse.ok(self.plots[row][col])

        return TransactionResponse.fail(f"Could not parse plot: {plot_ref!r}")

    # --- Accessors ---

    def get_user_id(self) -> str:
        return self.user_id

    def get_rows(self) -> int:
        return len(self.plots)

    def get_cols(self) -> int:
        return len(self.plots[0]) if self.plots else 0

    def get_plots(self) -> List[List[Plot]]:
        return self.plots

    def size(self) -> int:
        return self.get_rows() * self.get_cols()

    def get_plot_by_row_and_column(self, row: int, col: int) -> Optional[Plot]:
        if self._is_valid_index(row, col):
            return self.plots[row][col]
        return None

    def get_plot_position(self, plot: Plot) -> Optional[Position]:
        return self.plot_positions.get(plot)

    def set_plot_item(self, row: int, col: int, item: PlacedItem, now: Optional[float] = None) -> TransactionResponse:
        """Payload: the changed Plot."""
        if not self._is_valid_index(row, col):
            return TransactionResponse.fail(f"Could not find Plot at ({row}, {col})")
        plot = self.plots[row][col]
        plot.set_item(item, now)
        return TransactionResponse.ok(plot)

    # --- Resizing ---

    def can_add_row(self, level: int) -> bool:
        return self.get_rows() + 1 <= max_dimension(level)

    def can_add_column(self, level: int) -> bool:
        return self.get_cols() + 1 <= max_dimension(level)

    def set_garden_size(self, rows: int, cols: int, now: Optional[float] = None) -> TransactionResponse:
        """
        Resizes the grid, keeping contents by position and filling new cells with Ground.
        Payload: the plots that fell outside the new bounds.
        """

        if not isinstance(rows, int) or not isinstance(cols, int) or rows < 1 or cols < 1:
            return TransactionResponse.fail(f"Invalid garden size: {rows}x{cols}")

        discarded = [
            plot
            for row_index, row in enumerate(self.plots)
            for col_index, plot in enumerate(row)
            if row_index >= rows or col_index >= cols
        ]

        self.plots = [row[:cols] for row in self.plots[:rows]]
        self._fill_with_empty_plots(rows, cols, now)
        return TransactionResponse.ok(discarded)

    def add_row(self, level: int, now: Optional[float] = None) -> TransactionResponse:
        if not self.can_add_row(level):
            return TransactionResponse.fail(
                f"Cannot add row: level {level} allows at most {max_dimension(level)} rows")
        return self.set_garden_size(self.get_rows() + 1, self.get_cols(), now)

    def add_column(self, level: int, now: Optional[float] = None) -> TransactionResponse:
        if not self.can_add_column(level):
            return TransactionResponse.fail(
                f"Cannot add column: level {level} allows at most {max_dimension(level)} columns")
        return self.set_garden_size(self.get_rows(), self.get_cols() + 1, now)

    def remove_row(self) -> TransactionResponse:
        """Drops the last row. Payload: the discarded plots."""
        if self.get_rows() <= 1:
            return TransactionResponse.fail("Cannot remove row: garden must keep at least one row")
        return self.set_garden_size(self.get_rows() - 1, self.get_cols())

    def remove_column(self) -> TransactionResponse:
        """Drops the last column. Payload: the discarded plots."""
        if self.get_cols() <= 1:
            return TransactionResponse.fail("Cannot remove column: garden must keep at least one column")
        return self.set_garden_size(self.get_rows(), self.get_cols() - 1)

    # --- Plot operations ---

    def swap_plots(self, first: PlotRef, second: PlotRef) -> TransactionResponse:
        """Exchanges the positions of two plots. Payload: the new (first, second) positions."""

        first_response = self._resolve_plot(first)
        if not first_response.is_successful():
            return first_response
        second_response = self._resolve_plot(second)
        if not second_response.is_successful():
            return second_response

        first_plot: Plot = first_response.payload
        second_plot: Plot = second_response.payload
        row1, col1 = self.plot_positions[first_plot]
        row2, col2 = self.plot_positions[second_plot]

        self.plots[row1][col1], self.plots[row2][col2] = second_plot, first_plot
        self._rebuild_plot_positions()
        return TransactionResponse.ok((self.plot_positions[first_plot], self.plot_positions[second_plot]))

    def _place_from_inventory(self, inventory: Inventory, item: Union[InventoryItem, ItemTemplate, str],
                              plot_ref: PlotRef, expected_subtype: str, status: str,
                              now: Optional[float]) -> TransactionResponse:
        plot_response = self._resolve_plot(plot_ref)
        if not plot_response.is_successful():
            return plot_response

        plot: Plot = plot_response.payload
        if plot.get_item_subtype() != ItemSubtype.GROUND:
            return TransactionResponse.fail(f"Plot is not empty, contains {plot.get_item_subtype()}")

        get_response = inventory.get_item(item)
        if not get_response.is_successful():
            return get_response

        to_use: InventoryItem = get_response.payload
        if to_use.item_data.subtype != expected_subtype:
            return TransactionResponse.fail(
                f"Item is not of type {expected_subtype}, is of type {to_use.item_data.subtype}")

        use_response = inventory.use_item(to_use, 1, self.catalog)
        if not use_response.is_successful():
            return use_response

        placed = PlacedItem(use_response.payload["new_template"], status)
        plot.set_item(placed, now)
        return TransactionResponse.ok({
            "original_item": use_response.payload["original_item"],
            "updated_plot": plot,
            "placed_item": placed,
        })

    def plant_seed(self, inventory: Inventory, seed: Union[InventoryItem, ItemTemplate, str], plot_ref: PlotRef,
                   now: Optional[float] = None) -> TransactionResponse:
        """
        Consumes one seed from the inventory and grows its Plant in an empty plot.
        Payload: {"original_item": InventoryItem, "updated_plot": Plot, "placed_item": PlacedItem}
        """
        return self._place_from_inventory(inventory, seed, plot_ref, ItemSubtype.SEED, STATUS_PLANTED, now)

    def place_decoration(self, inventory: Inventory, blueprint: Union[InventoryItem, ItemTemplate, str],
                         plot_ref: PlotRef, now: Optional[float] = None) -> TransactionResponse:
        """Consumes one blueprint and places its Decoration in an empty plot. Payload as plant_seed."""
        return self._place_from_inventory(inventory, blueprint, plot_ref, ItemSubtype.BLUEPRINT, STATUS_PLACED, now)

    def _remove_from_plot(self, plot_ref: PlotRef, expected_subtype: str, replacement: Optional[PlacedItem],
                          now: Optional[float]) -> TransactionResponse:
        plot_response = self._resolve_plot(plot_ref)
        if not plot_response.is_successful():
            return plot_response

        plot: Plot = plot_response.payload
        if plot.get_item_subtype() != expected_subtype:
            return TransactionResponse.fail(
                f"Item is not of type {expected_subtype}, is of type {plot.get_item_subtype()}")

        if replacement is None:
            replacement = PlacedItem(self.catalog.get_ground_template(), STATUS_EMPTY)

        use_response = plot.use_item(self.catalog, replacement, now)
        if not use_response.is_successful():
            return use_response

        return TransactionResponse.ok({
            "original_item": use_response.payload["original_item"],
            "updated_plot": plot,
            "returned_template": use_response.payload["new_template"],
        })

    def harvest_plot(self, plot_ref: PlotRef, now: Optional[float] = None, instant_grow: bool = False,
                     replacement: Optional[PlacedItem] = None) -> TransactionResponse:
        """
        Clears a fully grown Plant. The caller credits the returned HarvestedItem template.
        Payload: {"original_item": PlacedItem, "updated_plot": Plot, "harvested_item_template": ItemTemplate}
        """

        plot_response = self._resolve_plot(plot_ref)
        if not plot_response.is_successful():
            return plot_response

        plot: Plot = plot_response.payload
        if plot.get_item_subtype() == ItemSubtype.PLANT and not plot.is_ready(now, instant_grow):
            return TransactionResponse.fail(
                f"{plot.item.item_data.name} is not ready: {int(plot.get_remaining_grow_time(now))}s left")

        response = self._remove_from_plot(plot, ItemSubtype.PLANT, replacement, now)
        if not response.is_successful():
            return response

        payload = response.payload
        payload["harvested_item_template"] = payload.pop("returned_template")
        return TransactionResponse.ok(payload)

    def repackage_plot(self, plot_ref: PlotRef, now: Optional[float] = None,
                       replacement: Optional[PlacedItem] = None) -> TransactionResponse:
        """
        Clears a Decoration. The caller credits the returned Blueprint template.
        Payload: {"original_item": PlacedItem, "updated_plot": Plot, "blueprint_item_template": ItemTemplate}
        """

        response = self._remove_from_plot(plot_ref, ItemSubtype.DECORATION, replacement, now)
        if not response.is_successful():
            return response

        payload = response.payload
        payload["blueprint_item_template"] = payload.pop("returned_template")
        return TransactionResponse.ok(payload)

    def plant_all(self, inventory: Inventory, seed: Union[InventoryItem, ItemTemplate, str],
                  now: Optional[float] = None) -> TransactionResponse:
        """Plants seed into every empty plot, in grid order, until the seeds run out. Payload: planted plots."""

        planted: List[Plot] = []
        empty_plots = [plot for row in self.plots for plot in row if plot.get_item_subtype() == ItemSubtype.GROUND]
        for plot in empty_plots:
            if not inventory.contains_amount(seed, 1).payload:
                break
            plant_response = self.plant_seed(inventory, seed, plot, now)
            if not plant_response.is_successful():
                if not planted:
                    return plant_response
                break
            planted.append(plot)

        if not planted:
            return TransactionResponse.fail("Nothing was planted: no empty plots or no seeds")
        return TransactionResponse.ok(planted)

    def harvest_all(self, inventory: Inventory, now: Optional[float] = None,
                    instant_grow: bool = False) -> TransactionResponse:
        """
        Harvests every ready Plant and credits the harvest to inventory.
        Payload: list of {"position": (row, col), "original_item": PlacedItem, "harvested_item_template": ItemTemplate}
        """

        harvested: List[Dict[str, Any]] = []
        for row in self.plots:
            for plot in row:
                if not plot.is_ready(now, instant_grow):
                    continue

                original_item = plot.item
                original_time = plot.plant_time
                harvest_response = self.harvest_plot(plot, now, instant_grow)
                if not harvest_response.is_successful():
                    continue

                template = harvest_response.payload["harvested_item_template"]
                add_response = inventory.add_item(template, 1)
                if not add_response.is_successful():
                    plot.item = original_item
                    plot.plant_time = original_time
                    if not harvested:
                        return add_response
                    return TransactionResponse.ok(harvested)
                harvested.append({
                    "position": self.plot_positions[plot],
                    "original_item": original_item,
                    "harvested_item_template": template,
                })

        if not harvested:
            return TransactionResponse.fail("Nothing is ready to harvest")
        return TransactionResponse.ok(harvested)

    # --- Serialization ---

    def to_plain_object(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "plots": [[plot.to_plain_object() for plot in row] for row in self.plots],
        }

    @classmethod
    def from_plain_object(cls, plain_object: Any, catalog, default_user_id: str = "Dummy User",
                          now: Optional[float] = None) -> "Garden":
        """Never raises. A snapshot without a usable grid yields a fresh starting garden."""

        if not isinstance(plain_object, dict):
            return cls(catalog, default_user_id, now=now)

        user_id = plain_object.get("user_id")
        if not isinstance(user_id, str) or not user_id:
            user_id = default_user_id

        plain_plots = plain_object.get("plots")
        if (not isinstance(plain_plots, list) or not plain_plots
                or not all(isinstance(row, list) and row for row in plain_plots)):
            return cls(catalog, user_id, now=now)

        plots = [[Plot.from_plain_object(plot, catalog, now) for plot in row] for row in plain_plots]
        cols = max(len(row) for row in plots)
        return cls(catalog, user_id, len(plots), cols, plots, now)
