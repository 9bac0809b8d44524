from .assets import (
    ItemType,
    ItemSubtype,
    ItemTemplate,
    ERROR_INVENTORY_TEMPLATE,
    ERROR_PLACED_TEMPLATE,
    StoreDefinition,
)
from .responses import TransactionResponse
from .items import InventoryItem, PlacedItem, is_valid_quantity
from .item_list import ItemList
from .item_store import ItemStore
from .inventory import Inventory, unit_price
from .store import Store, NOTHING_TO_RESTOCK
from .garden import Garden, Plot, max_dimension
from .user_data import UserProfile, UserProfileView

__all__ = [
    "ItemType",
    "ItemSubtype",
    "ItemTemplate",
    "ERROR_INVENTORY_TEMPLATE",
    "ERROR_PLACED_TEMPLATE",
    "StoreDefinition",
    "TransactionResponse",
    "InventoryItem",
    "PlacedItem",
    "is_valid_quantity",
    "ItemList",
    "ItemStore",
    "Inventory",
    "unit_price",
    "Store",
    "NOTHING_TO_RESTOCK",
    "Garden",
    "Plot",
    "max_dimension",
    "UserProfile",
    "UserProfileView",
]
