import time
from typing import Any, Dict, Optional, Union

from .assets import ItemTemplate, StoreDefinition
from .inventory import Inventory, unit_price
from .item_list import ItemList
from .item_store import ItemStore
from .items import InventoryItem, is_valid_quantity
from .responses import TransactionResponse

NOTHING_TO_RESTOCK = "Error: Nothing to restock!"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class Store(ItemStore):
    """
    A merchant: current stock, a target stock list, price multipliers and a restock timer.
    Times are Unix timestamps in seconds; restock_interval is in seconds.
    """

    DEFAULT_RESTOCK_INTERVAL = 300

    def __init__(
        self,
        store_id: int = 0,
        store_name: str = "",
        buy_multiplier: float = 2,
        sell_multiplier: float = 1,
        upgrade_multiplier: float = 1,
        items: Optional[ItemList] = None,
        stock_list: Optional[ItemList] = None,
        restock_time: Optional[float] = None,
        restock_interval: float = DEFAULT_RESTOCK_INTERVAL,
        now: Optional[float] = None,
        auto_restock: bool = True,
    ):
        super().__init__(items)
        now = time.time() if now is None else now

        self.store_id = store_id
        self.store_name = store_name
        self.buy_multiplier = buy_multiplier
        self.sell_multiplier = sell_multiplier
        self.upgrade_multiplier = upgrade_multiplier
        self.stock_list: ItemList = stock_list if stock_list is not None else ItemList()
        self.restock_time: float = now if restock_time is None else restock_time
        self.restock_interval = restock_interval

        # An elapsed timer means the store is due; restock as soon as it is loaded.
        if auto_restock and self.restock_time <= now:
            self.restock_if_needed(now)

    # --- Accessors ---

    def get_store_id(self) -> int:
        return self.store_id

    def get_store_name(self) -> str:
        return self.store_name

    def get_buy_multiplier(self) -> float:
        return self.buy_multiplier

    def set_buy_multiplier(self, multiplier: float):
        self.buy_multiplier = multiplier

    def get_sell_multiplier(self) -> float:
        return self.sell_multiplier

    def set_sell_multiplier(self, multiplier: float):
        self.sell_multiplier = multiplier

    def get_upgrade_multiplier(self) -> float:
        return self.upgrade_multiplier

    def set_upgrade_multiplier(self, multiplier: float):
        self.upgrade_multiplier = multiplier

    def get_stock_list(self) -> ItemList:
        return self.stock_list

    def set_stock_list(self, stock_list: ItemList):
        self.stock_list = stock_list

    def get_restock_time(self) -> float:
        return self.restock_time

    def set_restock_time(self, restock_time: float):
        self.restock_time = restock_time

    def get_restock_interval(self) -> float:
        return self.restock_interval

    def set_restock_interval(self, restock_interval: float):
        self.restock_interval = restock_interval

    def get_buy_price(self, item: Union[InventoryItem, ItemTemplate]) -> int:
        return unit_price(item, self.buy_multiplier)

    def get_sell_price(self, item: Union[InventoryItem, ItemTemplate]) -> int:
        return unit_price(item, self.sell_multiplier)

    # --- Exchange ---

    def can_buy_item(self, item: Union[InventoryItem, ItemTemplate, str], quantity: int, inventory: Inventory) -> bool:
        if not is_valid_quantity(quantity):
            return False
        get_response = self.get_item(item)
        if not get_response.is_successful() or get_response.payload.quantity < quantity:
            return False
        return inventory.get_gold() >= self.get_buy_price(get_response.payload) * quantity

    def buy_item_from_store(self, inventory: Inventory, item: Union[InventoryItem, ItemTemplate, str],
                            quantity: int) -> TransactionResponse:
        """
        Moves quantity of item from this store to the inventory in exchange for gold.
        Either every step applies or neither side changes.
        Payload: {"final_gold": int, "store_item": InventoryItem, "purchased_item": InventoryItem}
        """

        if not is_valid_quantity(quantity):
            return TransactionResponse.fail(f"Invalid quantity: {quantity}")

        get_response = self.get_item(item)
        if not get_response.is_successful():
            return get_response

        to_buy: InventoryItem = get_response.payload
        if to_buy.quantity < quantity:
            return TransactionResponse.fail(
                f"Invalid quantity: store has {to_buy.quantity} but buying {quantity}")

        inventory_snapshot = inventory.snapshot()
        store_snapshot = self.snapshot()

        buy_response = inventory.buy_item(to_buy, self.buy_multiplier, quantity)
        if not buy_response.is_successful():
            inventory.restore(inventory_snapshot)
            return buy_response

        decrease_response = self.trash_item(to_buy, quantity)
        if not decrease_response.is_successful():
            inventory.restore(inventory_snapshot)
            self.restore(store_snapshot)
            return decrease_response

        return TransactionResponse.ok({
            "final_gold": buy_response.payload["final_gold"],
            "store_item": decrease_response.payload,
            "purchased_item": buy_response.payload["purchased_item"],
        })

    def sell_item_to_store(self, inventory: Inventory, item: Union[InventoryItem, ItemTemplate, str],
                           quantity: int) -> TransactionResponse:
        """
        Moves quantity of item from the inventory into this store in exchange for gold.
        Payload: {"final_gold": int, "store_item": InventoryItem, "sold_item": InventoryItem}
        """

        if not is_valid_quantity(quantity):
            return TransactionResponse.fail(f"Invalid quantity: {quantity}")

        get_response = inventory.get_item(item)
        if not get_response.is_successful():
            return get_response

        to_sell: InventoryItem = get_response.payload
        if to_sell.quantity < quantity:
            return TransactionResponse.fail(
                f"Invalid quantity: inventory has {to_sell.quantity} but selling {quantity}")

        template = to_sell.item_data
        inventory_snapshot = inventory.snapshot()
        store_snapshot = self.snapshot()

        sell_response = inventory.sell_item(to_sell, self.sell_multiplier, quantity)
        if not sell_response.is_successful():
            inventory.restore(inventory_snapshot)
            return sell_response

        increase_response = self.add_item(template, quantity)
        if not increase_response.is_successful():
            inventory.restore(inventory_snapshot)
            self.restore(store_snapshot)
            return increase_response

        return TransactionResponse.ok({
            "final_gold": sell_response.payload["final_gold"],
            "store_item": increase_response.payload,
            "sold_item": sell_response.payload["remaining_item"],
        })

    def buy_custom_object_from_store(self, inventory: Inventory, cost: int) -> TransactionResponse:
        """Spends gold on something that is not an item (e.g. an upgrade). Payload: the final gold."""
        return inventory.remove_gold(cost)

    def empty_store(self) -> TransactionResponse:
        return self.delete_all()

    # --- Restocking ---

    def needs_restock(self, stock_list: Optional[ItemList] = None) -> bool:
        stock_list = self.stock_list if stock_list is None else stock_list

        for target in stock_list.get_all_items():
            current = self.get_item(target.item_data)
            if not current.is_successful() or current.payload.quantity < target.quantity:
                return True
        return False

    def restock_store(self, stock_list: Optional[ItemList] = None, now: Optional[float] = None) -> TransactionResponse:
        """
        Raises every item below its target quantity up to the target.
        A partial failure rolls the stock back. Success moves restock_time one interval past now.
        """

        stock_list = self.stock_list if stock_list is None else stock_list
        now = time.time() if now is None else now

        if not self.needs_restock(stock_list):
            return TransactionResponse.fail(NOTHING_TO_RESTOCK)

        response = TransactionResponse()
        items_snapshot = self.items.clone()
        did_add_item = False

        for target in stock_list.get_all_items():
            current = self.get_item(target.item_data)
            current_quantity = current.payload.quantity if current.is_successful() else 0

            if current_quantity >= target.quantity:
                continue

            add_response = self.add_item(target.item_data, target.quantity - current_quantity)
            if not add_response.is_successful():
                response.add_error_message(add_response.first_error())
            else:
                did_add_item = True

        if not response.is_successful():
            self.items = items_snapshot
            return response

        if not did_add_item:
            return TransactionResponse.fail(NOTHING_TO_RESTOCK)

        self.restock_time = now + self.restock_interval
        return TransactionResponse.ok(True)

    def restock_if_needed(self, now: Optional[float] = None) -> TransactionResponse:
        """Time-gated restock: only fires once restock_time has passed."""

        now = time.time() if now is None else now
        if now < self.restock_time:
            return TransactionResponse.fail(f"Restock available in {int(self.restock_time - now)}s")
        return self.restock_store(now=now)

    # --- Construction ---

    @staticmethod
    def stock_list_from_definition(definition: StoreDefinition, catalog) -> ItemList:
        """Target stock for a store definition. Unknown or placed-type ids are skipped."""

        stock_list = ItemList()
        for item_id, quantity in definition.stock:
            template = catalog.get_inventory_template(item_id)
            if template is not None and is_valid_quantity(quantity):
                stock_list.add_item(template, quantity)
        return stock_list

    @classmethod
    def from_definition(cls, definition: StoreDefinition, catalog, now: Optional[float] = None) -> "Store":
        """A brand new store: empty shelves, immediately restocked to its target."""

        return cls(
            store_id=definition.store_id,
            store_name=definition.store_name,
            buy_multiplier=definition.buy_multiplier,
            sell_multiplier=definition.sell_multiplier,
            upgrade_multiplier=definition.upgrade_multiplier,
            stock_list=cls.stock_list_from_definition(definition, catalog),
            restock_interval=definition.restock_interval,
            now=now,
        )

    # --- Serialization ---

    def to_plain_object(self) -> Dict[str, Any]:
        return {
            "store_id": self.store_id,
            "store_name": self.store_name,
            "buy_multiplier": self.buy_multiplier,
            "sell_multiplier": self.sell_multiplier,
            "upgrade_multiplier": self.upgrade_multiplier,
            "stock_list": self.stock_list.to_plain_object(),
            "items": self.items.to_plain_object(),
            "restock_time": self.restock_time,
            "restock_interval": self.restock_interval,
        }

    @classmethod
    def from_plain_object(cls, plain_object: Any, catalog, now: Optional[float] = None,
                          auto_restock: bool = True) -> "Store":
        """Never raises. Each malformed field falls back to its default."""

        if not isinstance(plain_object, dict):
            return cls(now=now, auto_restock=auto_restock)

        def number(key: str, default):
            value = plain_object.get(key)
            return value if _is_number(value) else default

        store_id = plain_object.get("store_id")
        store_name = plain_object.get("store_name")

        return cls(
            store_id=store_id if isinstance(store_id, int) and not isinstance(store_id, bool) else 0,
            store_name=store_name if isinstance(store_name, str) else "",
            buy_multiplier=number("buy_multiplier", 2),
            sell_multiplier=number("sell_multiplier", 1),
            upgrade_multiplier=number("upgrade_multiplier", 1),
            items=ItemList.from_plain_object(plain_object.get("items"), catalog),
            stock_list=ItemList.from_plain_object(plain_object.get("stock_list"), catalog),
            restock_time=number("restock_time", None),
            restock_interval=number("restock_interval", cls.DEFAULT_RESTOCK_INTERVAL),
            now=now,
            auto_restock=auto_restock,
        )
