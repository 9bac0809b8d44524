from dataclasses import dataclass


# Detached, read-only copies of durable rows. Repositories never hand out live ORM objects.

@dataclass(frozen=True)
class InventoryEntity:
    id: str
    owner: str
    gold: int


@dataclass(frozen=True)
class StoreEntity:
    id: str
    owner: str
    store_id: int
    store_name: str
    buy_multiplier: float
    sell_multiplier: float
    upgrade_multiplier: float
    restock_time: float
    restock_interval: float


@dataclass(frozen=True)
class InventoryItemEntity:
    id: str
    owner: str
    identifier: str
    quantity: int


@dataclass(frozen=True)
class GardenEntity:
    id: str
    owner: str
    rows: int
    cols: int


@dataclass(frozen=True)
class PlotEntity:
    id: str
    owner: str
    row_index: int
    col_index: int
    plant_time: float


@dataclass(frozen=True)
class PlacedItemEntity:
    id: str
    owner: str
    identifier: str
    status: str
