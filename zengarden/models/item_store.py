from typing import List, Optional, Union

from .assets import ItemTemplate
from .item_list import ItemList, ItemRef
from .items import InventoryItem
from .responses import TransactionResponse


class ItemStore:
    """Shared base for anything that owns an ItemList (Inventory, Store)."""

    def __init__(self, items: Optional[ItemList] = None):
        self.items: ItemList = items if items is not None else ItemList()

    def get_items(self) -> ItemList:
        return self.items

    def get_all_items(self) -> List[InventoryItem]:
        return self.items.get_all_items()

    def size(self) -> int:
        return self.items.size()

    def get_item(self, item: ItemRef) -> TransactionResponse:
        return self.items.get_item(item)

    def contains(self, item: ItemRef) -> TransactionResponse:
        return self.items.contains(item)

    def contains_amount(self, item: ItemRef, quantity: int) -> TransactionResponse:
        return self.items.contains_amount(item, quantity)

    def add_item(self, item: Union[InventoryItem, ItemTemplate], quantity: int) -> TransactionResponse:
        return self.items.add_item(item, quantity)

    def update_quantity(self, item: ItemRef, delta: int) -> TransactionResponse:
        return self.items.update_quantity(item, delta)

    def trash_item(self, item: ItemRef, quantity: int) -> TransactionResponse:
        return self.items.trash_item(item, quantity)

    def delete_item(self, item: ItemRef) -> TransactionResponse:
        return self.items.delete_item(item)

    def delete_all(self) -> TransactionResponse:
        return self.items.delete_all()

    def use_item(self, item: ItemRef, quantity: int, catalog) -> TransactionResponse:
        return self.items.use_item(item, quantity, catalog)

    def snapshot(self):
        """Opaque copy of the mutable state, for restore()."""
        return self.items.clone()

    def restore(self, snapshot):
        self.items = snapshot.clone()
