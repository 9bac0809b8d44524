from typing import Any, Dict, List, Optional, Union

from .assets import ItemTemplate, ItemType, ItemSubtype
from .items import InventoryItem, is_valid_quantity
from .responses import TransactionResponse

ItemRef = Union[InventoryItem, ItemTemplate, str]


class ItemList:
    """
    Ordered collection of InventoryItems, unique by template.
    Quantities are never negative; an entry whose quantity reaches zero is removed.
    """

    FIXED_ORDER = (ItemSubtype.SEED, ItemSubtype.HARVESTED, ItemSubtype.BLUEPRINT)

    def __init__(self, items: Optional[List[InventoryItem]] = None):
        self.items: List[InventoryItem] = list(items) if items else []
        self.items.sort(key=self._sort_key)

    @classmethod
    def _subtype_rank(cls, subtype: str) -> int:
        return cls.FIXED_ORDER.index(subtype) if subtype in cls.FIXED_ORDER else len(cls.FIXED_ORDER)

    @classmethod
    def _sort_key(cls, item: InventoryItem):
        return cls._subtype_rank(item.item_data.subtype), item.item_data.name

    # --- Serialization ---

    def to_plain_object(self) -> Dict[str, Any]:
        return {"items": [item.to_plain_object() for item in self.items]}

    @classmethod
    def from_plain_object(cls, plain_object: Any, catalog) -> "ItemList":
        """Builds a list from a snapshot, dropping any entry that resolves to the error template."""

        if not isinstance(plain_object, dict) or not isinstance(plain_object.get("items"), list):
            return cls()

        items: Dict[str, InventoryItem] = {}
        for item_dict in plain_object["items"]:
            item = InventoryItem.from_plain_object(item_dict, catalog)
            if item.item_data.is_error:
                continue
            if item.item_data.id in items:
                items[item.item_data.id].quantity += item.quantity
            else:
                items[item.item_data.id] = item

        return cls(list(items.values()))

    # --- Reads ---

    def get_all_items(self) -> List[InventoryItem]:
        return list(self.items)

    def get_items_by_subtype(self, subtype: str, category: Optional[str] = None) -> List[InventoryItem]:
        return [
            item for item in self.items
            if item.item_data.subtype == subtype and (category is None or item.item_data.category == category)
        ]

    def get_all_subtypes(self) -> List[str]:
        subtypes = {item.item_data.subtype for item in self.items}
        return sorted(subtypes, key=lambda s: (self._subtype_rank(s), s))

    def get_all_categories(self, subtype: str) -> List[str]:
        return sorted({item.item_data.category for item in self.items if item.item_data.subtype == subtype})

    def size(self) -> int:
        return len(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self):
        return iter(list(self.items))

    def _get_template_key(self, item: ItemRef) -> TransactionResponse:
        """Reduces any item reference to the string key used for matching."""

        if isinstance(item, str):
            return TransactionResponse.ok(item)
        if isinstance(item, ItemTemplate):
            if item.type == ItemType.PLACED:
                return TransactionResponse.fail("Cannot get a placed item from an item list")
            return TransactionResponse.ok(item.id)
        if isinstance(item, InventoryItem):
            return TransactionResponse.ok(item.item_data.id)
        return TransactionResponse.fail(f"Could not parse item: {item!r}")

    def _find(self, key: str, by_name: bool = False) -> Optional[InventoryItem]:
        for element in self.items:
            if element.item_data.id == key:
                return element
        if not by_name:
            return None
        # Plain strings may also be display names.
        for element in self.items:
            if element.item_data.name == key:
                return element
        return None

    def get_item(self, item: ItemRef) -> TransactionResponse:
        """Payload is the live InventoryItem stored in this list."""

        key_response = self._get_template_key(item)
        if not key_response.is_successful():
            return key_response

        found = self._find(key_response.payload, by_name=isinstance(item, str))
        if found is None:
            return TransactionResponse.fail(f"item {key_response.payload} not found")
        return TransactionResponse.ok(found)

    def contains(self, item: ItemRef) -> TransactionResponse:
        key_response = self._get_template_key(item)
        if not key_response.is_successful():
            return key_response
        return TransactionResponse.ok(self._find(key_response.payload, by_name=isinstance(item, str)) is not None)

    def contains_amount(self, item: ItemRef, quantity: int) -> TransactionResponse:
        if not is_valid_quantity(quantity):
            return TransactionResponse.fail(f"Invalid quantity: {quantity}")

        key_response = self._get_template_key(item)
        if not key_response.is_successful():
            return key_response

        found = self._find(key_response.payload, by_name=isinstance(item, str))
        return TransactionResponse.ok(found is not None and found.quantity >= quantity)

    # --- Mutations ---

    def use_item(self, item: ItemRef, quantity: int, catalog) -> TransactionResponse:
        """
        Consumes quantity of an item and returns its transformed template.
        Payload: {"original_item": InventoryItem, "new_template": ItemTemplate}
        """

        get_response = self.get_item(item)
        if not get_response.is_successful():
            return TransactionResponse.fail("item not in inventory")

        to_use: InventoryItem = get_response.payload
        use_response = to_use.use(quantity, catalog)
        if use_response.is_successful() and to_use.quantity <= 0:
            self.items.remove(to_use)
        return use_response

    def add_item(self, item: Union[InventoryItem, ItemTemplate], quantity: int) -> TransactionResponse:
        """
        Merges quantity into the existing entry for the template, or inserts a new entry at the front.
        Payload: the live InventoryItem.
        """

        if not is_valid_quantity(quantity):
            return TransactionResponse.fail(f"Invalid quantity: {quantity}. Cannot remove items with add.")

        if isinstance(item, InventoryItem):
            template = item.item_data
        elif isinstance(item, ItemTemplate):
            template = item
        else:
            return TransactionResponse.fail(f"Could not parse item of type {type(item).__name__}")

        if template.type != ItemType.INVENTORY:
            return TransactionResponse.fail("Cannot add a placed item to an item list")
        if template.is_error:
            return TransactionResponse.fail("Cannot add error item.")

        existing = self._find(template.id)
        if existing is not None:
            existing.quantity += quantity
            return TransactionResponse.ok(existing)

        new_item = InventoryItem(template, quantity)
        self.items.insert(0, new_item)
        return TransactionResponse.ok(new_item)

    def update_quantity(self, item: ItemRef, delta: int) -> TransactionResponse:
        """
        Applies delta to an existing entry. A result at or below zero deletes the entry.
        Payload: the live InventoryItem, or a zero-quantity copy when deleted.
        """

        if not isinstance(delta, int) or isinstance(delta, bool):
            return TransactionResponse.fail(f"Invalid quantity change: {delta}")

        get_response = self.get_item(item)
        if not get_response.is_successful():
            return TransactionResponse.fail("item not in inventory")

        to_update: InventoryItem = get_response.payload
        if to_update.quantity + delta <= 0:
            return self.delete_item(to_update)

        to_update.quantity += delta
        return TransactionResponse.ok(to_update)

    def trash_item(self, item: ItemRef, quantity: int) -> TransactionResponse:
        """Removes exactly quantity of an item; fails if the list holds less."""

        contains_response = self.contains_amount(item, quantity)
        if not contains_response.is_successful():
            return contains_response
        if not contains_response.payload:
            return TransactionResponse.fail(f"Not enough of item to remove {quantity}")
        return self.update_quantity(item, -quantity)

    def delete_item(self, item: ItemRef) -> TransactionResponse:
        """Removes the entry. Payload is a detached copy with quantity 0."""

        get_response = self.get_item(item)
        if not get_response.is_successful():
            return TransactionResponse.fail("item not in inventory")

        to_delete: InventoryItem = get_response.payload
        self.items.remove(to_delete)
        deleted = to_delete.copy()
        deleted.quantity = 0
        return TransactionResponse.ok(deleted)

    def delete_all(self) -> TransactionResponse:
        deleted = self.items
        self.items = []
        return TransactionResponse.ok(deleted)

    def clone(self) -> "ItemList":
        """Deep enough copy for snapshot/rollback: new entries, same immutable templates."""
        cloned = ItemList()
        cloned.items = [item.copy() for item in self.items]
        return cloned
