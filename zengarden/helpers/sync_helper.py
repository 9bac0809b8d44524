import asyncio
from typing import Callable, Dict, List, Optional, Set, Tuple

from sqlalchemy.orm import Session, sessionmaker

from ..models import (
    Garden,
    Inventory,
    InventoryItem,
    ItemList,
    PlacedItem,
    Plot,
    Store,
    TransactionResponse,
)
from ..models.garden import STATUS_EMPTY
from ..repositories import (
    GardenRepository,
    InventoryItemRepository,
    InventoryRepository,
    PlacedItemRepository,
    RecordNotFoundError,
    StoreRepository,
    session_scope,
)
from ..repositories.entities import GardenEntity, InventoryEntity, StoreEntity
from .game_state_helper import GameStateHelper
from .logging_helper import LoggingHelper

# (row, col, inventory identifier consumed, placed identifier, placed status)
Placement = Tuple[int, int, str, str, str]
# (row, col, placed identifier expected in the plot, inventory identifier credited)
Removal = Tuple[int, int, str, str]

RESYNC_MESSAGE = "Cloud save failed, so your game was reloaded from the cloud copy. Please try again."
CLOUD_UNAVAILABLE_MESSAGE = "Cloud save is unavailable right now. Please try again later."
RESTORE_FAILED_MESSAGE = "The backup could not be saved to the cloud, so your garden was left as it was."


class SyncHelper:
    """
    Keeps the durable database in step with the local game state.

    Every economy action follows the same protocol:
      1. the in-memory aggregates are mutated first (the player sees the result at once);
      2. if cloud save is on, the same change is applied durably in ONE transaction;
      3. if that fails for any reason, the local inventory, garden and stores are thrown away
         and rebuilt from the database. The local change is never retried or merged.

    The durable methods are blocking and run in a worker thread through run().
    """

    def __init__(self, session_factory: sessionmaker, game_state: GameStateHelper,
                 logger: Optional[LoggingHelper] = None, enabled: bool = False):
        self.session_factory = session_factory
        self.game_state = game_state
        self.catalog = game_state.catalog
        self.logger = logger or LoggingHelper()
        self.enabled = enabled

        self.inventory_repository = InventoryRepository(session_factory, self.logger)
        self.inventory_item_repository = InventoryItemRepository(session_factory, self.logger)
        self.placed_item_repository = PlacedItemRepository(session_factory, self.logger)
        self.store_repository = StoreRepository(session_factory, self.logger)
        self.garden_repository = GardenRepository(session_factory, self.logger)

        self._known_accounts: Set[str] = set()

    def _transaction(self):
        return session_scope(self.session_factory, logger=self.logger)

    # --- Protocol ---

    async def run(self, user_id: str, operation: Callable, *args) -> bool:
        """
        Applies operation(user_id, *args) durably. Returns True when the durable copy now matches,
        False when it failed and the local state was resynchronized from the database.
        """

        if not self.enabled:
            return True

        try:
            await asyncio.to_thread(operation, str(user_id), *args)
            return True
        except Exception as e:
            self.logger.log(
                f"Cloud save of {operation.__name__} for user {user_id} failed: {type(e).__name__}: {e}. "
                "Resynchronizing from the database.", "WARNING")
            await self.resync(user_id)
            return False

    async def ensure_account(self, user_id: str) -> bool:
        """
        The first time a player is seen: creates the durable account from the local state,
        or, if one already exists, replaces the local state with it.
        """

        if not self.enabled or str(user_id) in self._known_accounts:
            return True

        try:
            created = await asyncio.to_thread(self.initialize_account, str(user_id))
        except Exception as e:
            self.logger.log(f"Could not initialize cloud account for user {user_id}: {type(e).__name__}: {e}",
                            "ERROR")
            return False

        if not created:
            await self.resync(user_id)
        return True

    async def push_accounts(self, user_ids: List[str]) -> int:
        """Overwrites the durable copy of each player with the local one. Returns how many succeeded."""

        pushed = 0
        for user_id in user_ids:
            try:
                await asyncio.to_thread(self.overwrite_account, str(user_id))
                pushed += 1
            except Exception as e:
                self.logger.log(f"Could not push user {user_id} to the database: {type(e).__name__}: {e}", "ERROR")
        return pushed

    async def restore_account(self, user_id: str, snapshot) -> TransactionResponse:
        """
        Replaces one player's game with a backup snapshot, locally and durably.
        If the durable overwrite fails the previous local game is put back.
        """

        user_id = str(user_id)
        if not await self.ensure_account(user_id):
            return TransactionResponse.fail(CLOUD_UNAVAILABLE_MESSAGE)

        previous = self.game_state.export_account(user_id)
        self.game_state.import_account(user_id, snapshot)
        if not await self.run(user_id, self.overwrite_account):
            self.game_state.import_account(user_id, previous)
            return TransactionResponse.fail(RESTORE_FAILED_MESSAGE)
        return TransactionResponse.ok(user_id)

    async def resync(self, user_id: str) -> bool:
        """Overwrites the local aggregates with the durable ones."""

        try:
            durable = await asyncio.to_thread(self.load_account, str(user_id))
        except Exception as e:
            self.logger.log(f"Resync for user {user_id} failed: {type(e).__name__}: {e}", "ERROR")
            return False

        if durable is None:
            self.logger.log(f"Resync for user {user_id} skipped: no cloud account.", "WARNING")
            return False

        inventory, garden, stores = durable
        self.game_state.replace_account(user_id, inventory=inventory, garden=garden, stores=stores)
        self.logger.log(f"User {user_id} resynchronized from the database.", "WARNING")
        return True

    # --- Account bootstrap / load ---

    def account_exists(self, user_id: str) -> bool:
        return self.inventory_repository.get_inventory_by_owner(user_id) is not None

    def initialize_account(self, user_id: str) -> bool:
        """
        Writes every row of the player's current local game in one transaction.
        Returns False if the account already existed (nothing is written).
        """

        user_id = str(user_id)
        inventory = self.game_state.get_inventory(user_id)
        garden = self.game_state.get_garden(user_id)
        stores = self.game_state.get_stores(user_id)

        with self._transaction() as s:
            if self.inventory_repository.get_inventory_by_owner(user_id, session=s) is not None:
                self._known_accounts.add(user_id)
                return False
            self._write_account(user_id, inventory, garden, stores, s)

        self._known_accounts.add(user_id)
        self.logger.log(f"Cloud account created for user {user_id}.", "INFO")
        return True

    def _write_account(self, user_id: str, inventory: Inventory, garden: Garden, stores: Dict[int, Store],
                       s: Session):
        inventory_entity = self.inventory_repository.create_inventory(user_id, inventory.get_gold(), session=s)
        for item in inventory.get_all_items():
            self.inventory_item_repository.create_inventory_item(
                inventory_entity.id, item.item_data.id, item.quantity, session=s)

        for store in stores.values():
            store_entity = self.store_repository.create_store(
                user_id, store.get_store_id(), store.get_store_name(), store.get_buy_multiplier(),
                store.get_sell_multiplier(), store.get_upgrade_multiplier(), store.get_restock_time(),
                store.get_restock_interval(), session=s)
            for item in store.get_all_items():
                self.inventory_item_repository.create_inventory_item(
                    store_entity.id, item.item_data.id, item.quantity, session=s)

        garden_entity = self.garden_repository.create_garden(
            user_id, garden.get_rows(), garden.get_cols(), session=s)
        for row_index, row in enumerate(garden.get_plots()):
            for col_index, plot in enumerate(row):
                plot_entity = self.garden_repository.create_plot(
                    garden_entity.id, row_index, col_index, plot.plant_time, plot.plot_id, session=s)
                self.placed_item_repository.create_placed_item(
                    plot_entity.id, plot.item.item_data.id, plot.item.status, session=s)

    def _delete_account(self, user_id: str, s: Session):
        inventory = self.inventory_repository.get_inventory_by_owner(user_id, session=s)
        if inventory is not None:
            self.inventory_item_repository.delete_all_inventory_items_by_owner_id(inventory.id, session=s)
            self.inventory_repository.delete_inventory(inventory.id, session=s)
        for store in self.store_repository.get_stores_by_owner(user_id, session=s):
            self.inventory_item_repository.delete_all_inventory_items_by_owner_id(store.id, session=s)
            self.store_repository.delete_store(store.id, session=s)
        garden = self.garden_repository.get_garden_by_owner(user_id, session=s)
        if garden is not None:
            self.garden_repository.delete_garden(garden.id, session=s)

    def overwrite_account(self, user_id: str):
        """Replaces every durable row of the player with the current local game (used after a restore)."""

        user_id = str(user_id)
        inventory = self.game_state.get_inventory(user_id)
        garden = self.game_state.get_garden(user_id)
        stores = self.game_state.get_stores(user_id)

        with self._transaction() as s:
            self._delete_account(user_id, s)
            self._write_account(user_id, inventory, garden, stores, s)
        self._known_accounts.add(user_id)

    def _load_item_list(self, owner: str, s: Session) -> ItemList:
        items = []
        for entity in self.inventory_item_repository.get_all_inventory_items_by_owner_id(owner, session=s):
            template = self.catalog.get_inventory_template(entity.identifier)
            if template is None:
                self.logger.log(f"Durable item {entity.id} references unknown template {entity.identifier}. "
                                "Skipped.", "WARNING")
                continue
            items.append(InventoryItem(template, entity.quantity, entity.id))
        return ItemList(items)

    def load_account(self, user_id: str) -> Optional[Tuple[Inventory, Garden, Dict[int, Store]]]:
        """Builds the player's aggregates from the database, or None if there is no account."""

        user_id = str(user_id)
        with self._transaction() as s:
            inventory_entity = self.inventory_repository.get_inventory_by_owner(user_id, session=s)
            garden_entity = self.garden_repository.get_garden_by_owner(user_id, session=s)
            if inventory_entity is None or garden_entity is None:
                return None

            inventory = Inventory(user_id, inventory_entity.gold, self._load_item_list(inventory_entity.id, s))

            stores: Dict[int, Store] = {}
            for entity in self.store_repository.get_stores_by_owner(user_id, session=s):
                definition = self.game_state.store_definitions.get(entity.store_id)
                stock_list = (Store.stock_list_from_definition(definition, self.catalog)
                              if definition is not None else ItemList())
                stores[entity.store_id] = Store(
                    store_id=entity.store_id,
                    store_name=entity.store_name,
                    buy_multiplier=entity.buy_multiplier,
                    sell_multiplier=entity.sell_multiplier,
                    upgrade_multiplier=entity.upgrade_multiplier,
                    items=self._load_item_list(entity.id, s),
                    stock_list=stock_list,
                    restock_time=entity.restock_time,
                    restock_interval=entity.restock_interval,
                    auto_restock=False,
                )

            grid: List[List[Optional[Plot]]] = [[None] * garden_entity.cols for _ in range(garden_entity.rows)]
            for plot_entity in self.garden_repository.get_plots(garden_entity.id, session=s):
                if plot_entity.row_index >= garden_entity.rows or plot_entity.col_index >= garden_entity.cols:
                    continue
                placed = self.placed_item_repository.get_placed_item_by_plot_id(plot_entity.id, session=s)
                template = self.catalog.get_placed_template(placed.identifier) if placed else None
                if template is None:
                    plot = Plot.empty(self.catalog, plot_entity.plant_time)
                    plot.plot_id = plot_entity.id
                else:
                    plot = Plot(PlacedItem(template, placed.status, placed.id), plot_entity.plant_time, plot_entity.id)
                grid[plot_entity.row_index][plot_entity.col_index] = plot

            plots = [[plot if plot is not None else Plot.empty(self.catalog) for plot in row] for row in grid]
            garden = Garden(self.catalog, user_id, garden_entity.rows, garden_entity.cols, plots)

        return inventory, garden, stores

    # --- Durable lookups ---

    def _inventory(self, user_id: str, s: Session) -> InventoryEntity:
        entity = self.inventory_repository.get_inventory_by_owner(user_id, session=s)
        if entity is None:
            raise RecordNotFoundError(f"No inventory for user {user_id}")
        return entity

    def _store(self, user_id: str, store_id: int, s: Session) -> StoreEntity:
        entity = self.store_repository.get_store(user_id, store_id, session=s)
        if entity is None:
            raise RecordNotFoundError(f"No store {store_id} for user {user_id}")
        return entity

    def _garden(self, user_id: str, s: Session) -> GardenEntity:
        entity = self.garden_repository.get_garden_by_owner(user_id, session=s)
        if entity is None:
            raise RecordNotFoundError(f"No garden for user {user_id}")
        return entity

    # --- Durable operations (blocking; one transaction each) ---

    def purchase(self, user_id: str, store_id: int, identifier: str, quantity: int, total_cost: int):
        """Gold debit, store stock debit and inventory credit commit together or not at all."""

        with self._transaction() as s:
            inventory = self._inventory(user_id, s)
            store = self._store(user_id, store_id, s)
            if total_cost:
                self.inventory_repository.update_gold(inventory.id, -total_cost, session=s)
            self.inventory_item_repository.update_inventory_item_quantity_by_owner_id(
                store.id, identifier, -quantity, session=s)
            self.inventory_item_repository.add_inventory_item(inventory.id, identifier, quantity, session=s)

    def sale(self, user_id: str, store_id: int, identifier: str, quantity: int, total_earnings: int):
        with self._transaction() as s:
            inventory = self._inventory(user_id, s)
            store = self._store(user_id, store_id, s)
            self.inventory_item_repository.update_inventory_item_quantity_by_owner_id(
                inventory.id, identifier, -quantity, session=s)
            if total_earnings:
                self.inventory_repository.update_gold(inventory.id, total_earnings, session=s)
            self.inventory_item_repository.add_inventory_item(store.id, identifier, quantity, session=s)

    def restock(self, user_id: str, store_id: int, added: Dict[str, int], restock_time: float):
        with self._transaction() as s:
            store = self._store(user_id, store_id, s)
            for identifier, quantity in added.items():
                self.inventory_item_repository.add_inventory_item(store.id, identifier, quantity, session=s)
            self.store_repository.set_restock_time(store.id, restock_time, session=s)

    def set_gold(self, user_id: str, gold: int):
        with self._transaction() as s:
            self.inventory_repository.set_gold(self._inventory(user_id, s).id, gold, session=s)

    def place_from_inventory(self, user_id: str, placements: List[Placement], ground_identifier: str, now: float):
        """Consumes one inventory item per placement and puts its placed form into an empty plot."""

        with self._transaction() as s:
            inventory = self._inventory(user_id, s)
            garden = self._garden(user_id, s)
            for row, col, inventory_identifier, placed_identifier, status in placements:
                self.inventory_item_repository.update_inventory_item_quantity_by_owner_id(
                    inventory.id, inventory_identifier, -1, session=s)
                plot = self.garden_repository.set_plot_plant_time(garden.id, row, col, now, session=s)
                self.placed_item_repository.replace_placed_item_by_plot_id(
                    plot.id, placed_identifier, status, expected_identifier=ground_identifier, session=s)

    def return_to_inventory(self, user_id: str, removals: List[Removal], ground_identifier: str, now: float):
        """Clears plots back to Ground and credits what came out of them (harvest, repackage)."""

        with self._transaction() as s:
            inventory = self._inventory(user_id, s)
            garden = self._garden(user_id, s)
            for row, col, expected_identifier, inventory_identifier in removals:
                plot = self.garden_repository.set_plot_plant_time(garden.id, row, col, now, session=s)
                self.placed_item_repository.replace_placed_item_by_plot_id(
                    plot.id, ground_identifier, STATUS_EMPTY, expected_identifier=expected_identifier, session=s)
                self.inventory_item_repository.add_inventory_item(inventory.id, inventory_identifier, 1, session=s)

    def resize_garden(self, user_id: str, rows: int, cols: int, ground_identifier: str, now: float,
                      refunds: Dict[str, int]):
        with self._transaction() as s:
            garden = self._garden(user_id, s)
            self.garden_repository.resize_garden(garden.id, rows, cols, ground_identifier, now, session=s)
            if refunds:
                inventory = self._inventory(user_id, s)
                for identifier, quantity in refunds.items():
                    self.inventory_item_repository.add_inventory_item(inventory.id, identifier, quantity, session=s)

    def swap_plots(self, user_id: str, first: Tuple[int, int], second: Tuple[int, int]):
        with self._transaction() as s:
            garden = self._garden(user_id, s)
            self.garden_repository.swap_plots(garden.id, first, second, session=s)
