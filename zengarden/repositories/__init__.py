from .db import Base, create_db_engine, create_session_factory, session_scope
from .entities import (
    GardenEntity,
    InventoryEntity,
    InventoryItemEntity,
    PlacedItemEntity,
    PlotEntity,
    StoreEntity,
)
from .errors import (
    RepositoryError,
    RecordNotFoundError,
    InvalidQuantityError,
    InsufficientFundsError,
)
from .inventory_item_repository import InventoryItemRepository
from .placed_item_repository import PlacedItemRepository
from .inventory_repository import InventoryRepository
from .store_repository import StoreRepository
from .garden_repository import GardenRepository

__all__ = [
    "Base",
    "create_db_engine",
    "create_session_factory",
    "session_scope",
    "GardenEntity",
    "InventoryEntity",
    "InventoryItemEntity",
    "PlacedItemEntity",
    "PlotEntity",
    "StoreEntity",
    "RepositoryError",
    "RecordNotFoundError",
    "InvalidQuantityError",
    "InsufficientFundsError",
    "InventoryItemRepository",
    "PlacedItemRepository",
    "InventoryRepository",
    "StoreRepository",
    "GardenRepository",
]
