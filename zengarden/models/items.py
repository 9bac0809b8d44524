import dataclasses
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict

from .assets import ItemTemplate, ItemType, ItemSubtype, ERROR_INVENTORY_TEMPLATE, ERROR_PLACED_TEMPLATE
from .responses import TransactionResponse


def is_valid_quantity(quantity: Any) -> bool:
    """Quantities are strictly positive integers. Booleans are rejected even though they subclass int."""
    return isinstance(quantity, int) and not isinstance(quantity, bool) and quantity > 0


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class InventoryItem:
    """An owned stack of an Inventory-type template. Belongs to exactly one ItemList."""
    item_data: ItemTemplate
    quantity: int = 1
    inventory_item_id: str = field(default_factory=_new_id)

    def get_quantity(self) -> int:
        return self.quantity

    def copy(self) -> "InventoryItem":
        return dataclasses.replace(self)

    def use(self, quantity: int, catalog) -> TransactionResponse:
        """
        Consumes quantity of this stack and returns the template it turns into.
        Seed -> Plant, Blueprint -> Decoration. HarvestedItem cannot be used.
        Payload: {"original_item": InventoryItem, "new_template": ItemTemplate}
        """

        if not is_valid_quantity(quantity):
            return TransactionResponse.fail(f"Invalid quantity: {quantity}")

        if self.quantity < quantity:
            return TransactionResponse.fail(
                f"Not enough {self.item_data.name}: has {self.quantity} but using {quantity}")

        transform_response = catalog.transform(self.item_data)
        if not transform_response.is_successful():
            return transform_response

        self.quantity -= quantity
        return TransactionResponse.ok({"original_item": self, "new_template": transform_response.payload})

    def to_plain_object(self) -> Dict[str, Any]:
        return {
            "inventory_item_id": self.inventory_item_id,
            "item_data": self.item_data.to_plain_object(),
            "quantity": self.quantity,
        }

    @classmethod
    def from_plain_object(cls, plain_object: Any, catalog) -> "InventoryItem":
        """Never raises. Unusable input yields an item holding the error template."""

        if not isinstance(plain_object, dict):
            return cls(ERROR_INVENTORY_TEMPLATE, 1)

        quantity = plain_object.get("quantity")
        if not is_valid_quantity(quantity):
            return cls(ERROR_INVENTORY_TEMPLATE, 1)

        template = catalog.resolve_template(plain_object.get("item_data"), ItemType.INVENTORY)
        item_id = plain_object.get("inventory_item_id")
        if not isinstance(item_id, str) or not item_id:
            item_id = _new_id()

        return cls(template, quantity, item_id)


@dataclass
class PlacedItem:
    """An item occupying a Plot. Placed items have a free-form status instead of a quantity."""
    item_data: ItemTemplate
    status: str = ""
    placed_item_id: str = field(default_factory=_new_id)

    def get_status(self) -> str:
        return self.status

    def set_status(self, status: str):
        self.status = status

    def use(self, catalog) -> TransactionResponse:
        """
        Returns the template this item turns into when removed from its plot.
        Plant -> HarvestedItem, Decoration -> Blueprint. Ground cannot be used.
        Payload: {"original_item": PlacedItem, "new_template": ItemTemplate}
        """

        if self.item_data.subtype not in (ItemSubtype.PLANT, ItemSubtype.DECORATION):
            return TransactionResponse.fail(f"item is of type {self.item_data.subtype}, cannot be used")

        transform_response = catalog.transform(self.item_data)
        if not transform_response.is_successful():
            return transform_response

        return TransactionResponse.ok({"original_item": self, "new_template": transform_response.payload})

    def to_plain_object(self) -> Dict[str, Any]:
        return {
            "placed_item_id": self.placed_item_id,
            "item_data": self.item_data.to_plain_object(),
            "status": self.status,
        }

    @classmethod
    def from_plain_object(cls, plain_object: Any, catalog) -> "PlacedItem":
        if not isinstance(plain_object, dict) or not isinstance(plain_object.get("status"), str):
            return cls(ERROR_PLACED_TEMPLATE, "error")

        template = catalog.resolve_template(plain_object.get("item_data"), ItemType.PLACED)
        item_id = plain_object.get("placed_item_id")
        if not isinstance(item_id, str) or not item_id:
            item_id = _new_id()

        return cls(template, plain_object["status"], item_id)
