from typing import Any, Dict, Optional, Tuple, TYPE_CHECKING

from ..models import Garden, Inventory, Store, StoreDefinition, UserProfile
from .catalog_helper import ItemCatalog
from .logging_helper import LoggingHelper

if TYPE_CHECKING:
    from redbot.core import Config


class GameStateHelper:
    """
    The local copy of every player's game, and the only place it is read from or written to disk.

    On disk (Red Config) each user is a set of plain snapshots:
        {"users": {user_id: {"profile": ..., "inventory": ..., "garden": ..., "stores": {store_id: ...}}},
         "global_state": {...}}
    In memory the snapshots are turned into live aggregates on first access and cached; every
    helper works on those same objects. commit_to_disk() serializes them back.
    """

    DEFAULTS = {
        "starting_gold": Inventory.STARTING_GOLD,
        "restock_check_interval_seconds": 60,
        "xp_per_level": 100,
    }

    def __init__(self, config_object: "Config", catalog: ItemCatalog,
                 store_definitions: Dict[int, StoreDefinition], logger: Optional[LoggingHelper] = None):
        self.config = config_object
        self.catalog = catalog
        self.store_definitions = store_definitions
        self.logger = logger or LoggingHelper()
        self.game_state: Dict[str, Any] = {}

        self._profiles: Dict[str, UserProfile] = {}
        self._inventories: Dict[str, Inventory] = {}
        self._gardens: Dict[str, Garden] = {}
        self._stores: Dict[Tuple[str, int], Store] = {}

    async def load_game_state(self):
        """Loads the entire game state from disk into memory and initializes defaults."""

        self.game_state = await self.config.game_state()

        self.game_state.setdefault("users", {})
        self.game_state.setdefault("global_state", {})

        settings = self.game_state["global_state"]
        for key, value in self.DEFAULTS.items():
            settings.setdefault(key, value)

        self._profiles.clear()
        self._inventories.clear()
        self._gardens.clear()
        self._stores.clear()

        await self.logger.log_to_discord(
            f"System Startup: Game state loaded into memory ({len(self.game_state['users'])} users).", "INFO")

    # --- Raw snapshots ---

    def get_all_user_data(self) -> Dict[str, Dict]:
        return self.game_state.get("users", {})

    def get_user_data(self, user_id: str) -> Dict[str, Any]:
        return self.game_state.get("users", {}).get(str(user_id), {})

    def set_user_data(self, user_id: str, user_dict: Dict[str, Any]):
        self.game_state.setdefault("users", {})[str(user_id)] = user_dict

    def get_global_state(self, key: str, default: Any = None) -> Any:
        if default is None:
            default = self.DEFAULTS.get(key)
        return self.game_state.get("global_state", {}).get(key, default)

    def set_global_state(self, key: str, value: Any):
        self.game_state.setdefault("global_state", {})[key] = value

    # --- Live aggregates ---

    def has_account(self, user_id: str) -> bool:
        user_id = str(user_id)
        return user_id in self._inventories or bool(self.get_user_data(user_id))

    def get_profile(self, user_id: str) -> UserProfile:
        user_id = str(user_id)
        if user_id not in self._profiles:
            self._profiles[user_id] = UserProfile.from_plain_object(
                self.get_user_data(user_id).get("profile"), user_id)
        return self._profiles[user_id]

    def get_inventory(self, user_id: str) -> Inventory:
        user_id = str(user_id)
        if user_id not in self._inventories:
            plain = self.get_user_data(user_id).get("inventory")
            if plain is None:
                self._inventories[user_id] = Inventory(user_id, self.get_global_state("starting_gold"))
            else:
                self._inventories[user_id] = Inventory.from_plain_object(plain, self.catalog, user_id)
        return self._inventories[user_id]

    def get_garden(self, user_id: str) -> Garden:
        user_id = str(user_id)
        if user_id not in self._gardens:
            self._gardens[user_id] = Garden.from_plain_object(
                self.get_user_data(user_id).get("garden"), self.catalog, user_id)
        return self._gardens[user_id]

    def get_store(self, user_id: str, store_id: int) -> Optional[Store]:
        """Each player has a private copy of every store. None for an unknown store id."""

        user_id = str(user_id)
        key = (user_id, store_id)
        if key in self._stores:
            return self._stores[key]

        definition = self.store_definitions.get(store_id)
        if definition is None:
            return None

        plain = self.get_user_data(user_id).get("stores", {}).get(str(store_id))
        if isinstance(plain, dict):
            store = Store.from_plain_object(plain, self.catalog, auto_restock=False)
            # Targets always follow the current data files.
            store.set_stock_list(Store.stock_list_from_definition(definition, self.catalog))
        else:
            store = Store.from_definition(definition, self.catalog)

        self._stores[key] = store
        return store

    def get_stores(self, user_id: str) -> Dict[int, Store]:
        return {store_id: self.get_store(user_id, store_id) for store_id in sorted(self.store_definitions)}

    def get_loaded_stores(self) -> Dict[Tuple[str, int], Store]:
        return dict(self._stores)

    def replace_account(self, user_id: str, inventory: Optional[Inventory] = None,
                        garden: Optional[Garden] = None, stores: Optional[Dict[int, Store]] = None,
                        profile: Optional[UserProfile] = None):
        """Overwrites the local aggregates given. Used when the durable or backup copy wins."""

        user_id = str(user_id)
        if inventory is not None:
            self._inventories[user_id] = inventory
        if garden is not None:
            self._gardens[user_id] = garden
        if profile is not None:
            self._profiles[user_id] = profile
        for store_id, store in (stores or {}).items():
            self._stores[(user_id, store_id)] = store
        self.save_user(user_id)

    def export_account(self, user_id: str) -> Dict[str, Any]:
        """Full plain snapshot of one player, as stored on disk and sent to the backup service."""

        user_id = str(user_id)
        return {
            "user": self.get_profile(user_id).to_plain_object(),
            "inventory": self.get_inventory(user_id).to_plain_object(),
            "garden": self.get_garden(user_id).to_plain_object(),
            "stores": {str(store_id): store.to_plain_object() for store_id, store in self.get_stores(user_id).items()},
        }

    def import_account(self, user_id: str, snapshot: Any):
        """Replaces one player's local game with a plain snapshot. Malformed parts become defaults."""

        user_id = str(user_id)
        snapshot = snapshot if isinstance(snapshot, dict) else {}
        plain_stores = snapshot.get("stores") if isinstance(snapshot.get("stores"), dict) else {}

        stores = {}
        for store_id, definition in self.store_definitions.items():
            plain = plain_stores.get(str(store_id))
            if isinstance(plain, dict):
                store = Store.from_plain_object(plain, self.catalog, auto_restock=False)
                store.set_stock_list(Store.stock_list_from_definition(definition, self.catalog))
            else:
                store = Store.from_definition(definition, self.catalog)
            stores[store_id] = store

        plain_inventory = snapshot.get("inventory")
        self.replace_account(
            user_id,
            inventory=(Inventory.from_plain_object(plain_inventory, self.catalog, user_id)
                       if plain_inventory is not None else Inventory(user_id, self.get_global_state("starting_gold"))),
            garden=Garden.from_plain_object(snapshot.get("garden"), self.catalog, user_id),
            stores=stores,
            profile=UserProfile.from_plain_object(snapshot.get("user"), user_id),
        )

    def save_user(self, user_id: str):
        """Writes one player's live aggregates back into the snapshot dict (memory only)."""

        user_id = str(user_id)
        user_data = self.game_state.setdefault("users", {}).setdefault(user_id, {})
        if user_id in self._profiles:
            user_data["profile"] = self._profiles[user_id].to_plain_object()
        if user_id in self._inventories:
            user_data["inventory"] = self._inventories[user_id].to_plain_object()
        if user_id in self._gardens:
            user_data["garden"] = self._gardens[user_id].to_plain_object()
        stores = user_data.setdefault("stores", {})
        for (owner, store_id), store in self._stores.items():
            if owner == user_id:
                stores[str(store_id)] = store.to_plain_object()

    async def commit_to_disk(self):
        loaded_users = set(self._profiles) | set(self._inventories) | set(self._gardens)
        loaded_users |= {owner for owner, _ in self._stores}
        for user_id in loaded_users:
            self.save_user(user_id)
        await self.config.game_state.set(self.game_state)
