from typing import Any, Dict, Optional, Union

from .assets import ItemTemplate
from .item_list import ItemList
from .item_store import ItemStore
from .items import InventoryItem, is_valid_quantity
from .responses import TransactionResponse


def unit_price(item: Union[InventoryItem, ItemTemplate], multiplier: float) -> int:
    """Effective price of one unit: template value scaled by a store multiplier, rounded down."""
    template = item.item_data if isinstance(item, InventoryItem) else item
    return int(template.value * multiplier)


class Inventory(ItemStore):
    """A player's items plus their gold balance. Gold is never negative."""

    STARTING_GOLD = 100

    def __init__(self, user_id: str = "Dummy User", gold: int = STARTING_GOLD, items: Optional[ItemList] = None):
        super().__init__(items)
        self.user_id = user_id
        self.gold = max(0, int(gold))

    def get_user_id(self) -> str:
        return self.user_id

    def get_gold(self) -> int:
        return self.gold

    def add_gold(self, amount: int) -> TransactionResponse:
        """Payload: the final gold."""
        if not is_valid_quantity(amount):
            return TransactionResponse.fail(f"Invalid gold amount: {amount}")
        self.gold += amount
        return TransactionResponse.ok(self.gold)

    def remove_gold(self, amount: int) -> TransactionResponse:
        """Payload: the final gold. Fails without change when the balance is too low."""
        if not is_valid_quantity(amount):
            return TransactionResponse.fail(f"Invalid gold amount: {amount}")
        if self.gold < amount:
            return TransactionResponse.fail(f"Error: requires {amount} gold but has {self.gold}")
        self.gold -= amount
        return TransactionResponse.ok(self.gold)

    def buy_item(self, item: Union[InventoryItem, ItemTemplate], multiplier: float, quantity: int) -> TransactionResponse:
        """
        Inventory half of a purchase: spends gold and receives the items.
        Payload: {"final_gold": int, "purchased_item": InventoryItem}
        """

        if not is_valid_quantity(quantity):
            return TransactionResponse.fail(f"Invalid quantity: {quantity}")

        total_cost = unit_price(item, multiplier) * quantity
        if self.gold < total_cost:
            return TransactionResponse.fail(f"Error: requires {total_cost} gold but has {self.gold}")

        add_response = self.add_item(item, quantity)
        if not add_response.is_successful():
            return add_response

        self.gold -= total_cost
        return TransactionResponse.ok({"final_gold": self.gold, "purchased_item": add_response.payload})

    def sell_item(self, item: Union[InventoryItem, ItemTemplate, str], multiplier: float,
                  quantity: int) -> TransactionResponse:
        """
        Inventory half of a sale: gives up the items and receives gold.
        Payload: {"final_gold": int, "remaining_item": InventoryItem}
        """

        if not is_valid_quantity(quantity):
            return TransactionResponse.fail(f"Invalid quantity: {quantity}")

        get_response = self.get_item(item)
        if not get_response.is_successful():
            return get_response

        to_sell: InventoryItem = get_response.payload
        if to_sell.quantity < quantity:
            return TransactionResponse.fail(
                f"Invalid quantity: inventory has {to_sell.quantity} but selling {quantity}")

        earnings = unit_price(to_sell, multiplier) * quantity
        update_response = self.update_quantity(to_sell, -quantity)
        if not update_response.is_successful():
            return update_response

        self.gold += earnings
        return TransactionResponse.ok({"final_gold": self.gold, "remaining_item": update_response.payload})

    def snapshot(self):
        return self.gold, self.items.clone()

    def restore(self, snapshot):
        gold, items = snapshot
        self.gold = gold
        self.items = items.clone()

    def to_plain_object(self) -> Dict[str, Any]:
        return {"user_id": self.user_id, "gold": self.gold, "items": self.items.to_plain_object()}

    @classmethod
    def from_plain_object(cls, plain_object: Any, catalog, default_user_id: str = "Dummy User") -> "Inventory":
        """Never raises; malformed snapshots produce a fresh default inventory."""

        if not isinstance(plain_object, dict):
            return cls(default_user_id)

        user_id = plain_object.get("user_id")
        if not isinstance(user_id, str) or not user_id:
            user_id = default_user_id

        gold = plain_object.get("gold")
        if not isinstance(gold, int) or isinstance(gold, bool) or gold < 0:
            return cls(user_id)

        return cls(user_id, gold, ItemList.from_plain_object(plain_object.get("items"), catalog))
