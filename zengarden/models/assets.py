from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple


class ItemType:
    """The two containers an item can live in."""
    INVENTORY = "InventoryItem"
    PLACED = "PlacedItem"

    ALL: Tuple[str, ...] = (INVENTORY, PLACED)


class ItemSubtype:
    """Closed set of item kinds. Each kind belongs to exactly one ItemType."""
    SEED = "Seed"
    HARVESTED = "HarvestedItem"
    BLUEPRINT = "Blueprint"
    PLANT = "Plant"
    DECORATION = "Decoration"
    GROUND = "Ground"

    INVENTORY_SUBTYPES: Tuple[str, ...] = (SEED, HARVESTED, BLUEPRINT)
    PLACED_SUBTYPES: Tuple[str, ...] = (PLANT, DECORATION, GROUND)

    # Kind -> kind of the template it turns into when used. Missing keys cannot be used.
    TRANSFORMS: Dict[str, str] = {
        SEED: PLANT,
        PLANT: HARVESTED,
        BLUEPRINT: DECORATION,
        DECORATION: BLUEPRINT,
    }

    @classmethod
    def type_of(cls, subtype: str) -> Optional[str]:
        if subtype in cls.INVENTORY_SUBTYPES:
            return ItemType.INVENTORY
        if subtype in cls.PLACED_SUBTYPES:
            return ItemType.PLACED
        return None


ERROR_NAME = "error"


@dataclass(frozen=True)
class ItemTemplate:
    """Represents a single immutable item definition from the data/items catalog."""
    id: str
    name: str
    icon: str
    type: str
    subtype: str
    value: int
    transform_id: str
    category: str = ""
    base_exp: int = 0
    grow_time: int = 0

    @property
    def is_error(self) -> bool:
        return self.name == ERROR_NAME

    def to_plain_object(self) -> Dict[str, Any]:
        # Owned items only reference their template; the catalog is the source of the rest.
        return {"id": self.id, "name": self.name, "subtype": self.subtype}


ERROR_INVENTORY_TEMPLATE = ItemTemplate(
    id="1999999", name=ERROR_NAME, icon="❌", type=ItemType.INVENTORY, subtype=ItemSubtype.SEED,
    value=0, transform_id="0999999",
)

ERROR_PLACED_TEMPLATE = ItemTemplate(
    id="0999999", name=ERROR_NAME, icon="❌", type=ItemType.PLACED, subtype=ItemSubtype.PLANT,
    value=0, transform_id="1999999",
)


@dataclass(frozen=True)
class StoreDefinition:
    """A merchant as defined in data/stores.json. stock pairs template ids with target quantities."""
    store_id: int
    store_name: str
    buy_multiplier: float = 2
    sell_multiplier: float = 1
    upgrade_multiplier: float = 1
    restock_interval: int = 300
    stock: Tuple[Tuple[str, int], ...] = ()
