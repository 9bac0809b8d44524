import json
import pathlib
from typing import Any, Dict, List, Optional

from ..models import (
    ItemSubtype,
    ItemTemplate,
    StoreDefinition,
)
from .catalog_helper import ItemCatalog
from .logging_helper import LoggingHelper

# Used when data/items/ is missing or unreadable, so the game can still start.
DEFAULT_ITEM_DATA: List[Dict[str, Any]] = [
    {"id": "0000000", "name": "ground", "icon": "🟫", "subtype": "Ground", "value": 0, "transform_id": "0000000"},
    {"id": "1010001", "name": "apple seed", "icon": "🌰", "subtype": "Seed", "value": 10,
     "transform_id": "0010001", "category": "Tree"},
    {"id": "0010001", "name": "apple", "icon": "🌳", "subtype": "Plant", "value": 50,
     "transform_id": "1020001", "category": "Tree", "base_exp": 10, "grow_time": 60},
    {"id": "1020001", "name": "harvested apple", "icon": "🍎", "subtype": "HarvestedItem", "value": 50,
     "transform_id": "", "category": "Tree"},
]

DEFAULT_STORE_DATA: List[Dict[str, Any]] = [
    {"store_id": 0, "store_name": "General Store", "buy_multiplier": 2, "sell_multiplier": 1,
     "upgrade_multiplier": 1, "restock_interval": 300, "stock": {"1010001": 10}},
]


class DataHelper:
    """
    Handles the loading and validation of all JSON data files from the data directory.
    This class is responsible for parsing raw JSON into the item catalog and store definitions.
    It operates in a read-only manner on the data path.
    """

    def __init__(self, data_path_obj: pathlib.Path, logger: Optional[LoggingHelper] = None):
        self.data_path = data_path_obj
        self.logger = logger or LoggingHelper()

        self.catalog: Optional[ItemCatalog] = None
        self.store_definitions: Dict[int, StoreDefinition] = {}

    def load_all_data(self):
        """Master method to load all data files."""

        self.logger.init_log("Data loading process initiated.", "INFO")

        self.catalog = self._load_catalog()
        self.store_definitions = self._load_store_definitions()

        self.logger.init_log(
            f"All data files loaded and processed: {len(self.catalog)} templates, "
            f"{len(self.store_definitions)} store(s).", "INFO")

    def _read_json(self, file_path: pathlib.Path, log_prefix: str) -> Any:
        """Parsed contents of one file, or None when it cannot be read. Never raises."""

        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            self.logger.init_log(f"{log_prefix}Could not read '{file_path.name}': {e}.", "ERROR")
            return None

    def _load_json_file(self, filename: str, default_data: Any) -> Any:
        """One top-level data file. Missing, empty or broken files yield default_data."""

        file_path = self.data_path / filename
        log_prefix = f"Data Load ({filename}): "

        if not file_path.exists():
            self.logger.init_log(f"{log_prefix}File not found. Using default fallback data.", "ERROR")
            return default_data

        data = self._read_json(file_path, log_prefix)
        if not data:
            self.logger.init_log(f"{log_prefix}Nothing usable in file. Using default fallback data.", "WARNING")
            return default_data

        self.logger.init_log(f"{log_prefix}Loaded {len(data)} entries.", "INFO")
        return data

    def _load_and_compile_json_from_directory(self, dir_name: str) -> List[Dict[str, Any]]:
        """Concatenates the JSON lists of every *.json file in a subdirectory, in file name order."""

        directory_path = self.data_path / dir_name
        log_prefix = f"Data Load ({dir_name}/): "

        json_files = sorted(directory_path.glob("*.json")) if directory_path.is_dir() else []
        if not json_files:
            self.logger.init_log(f"{log_prefix}No JSON files to load.", "WARNING")
            return []

        compiled_data: List[Dict[str, Any]] = []
        for file_path in json_files:
            data = self._read_json(file_path, log_prefix)
            if isinstance(data, list):
                compiled_data.extend(data)
            elif data is not None:
                self.logger.init_log(f"{log_prefix}'{file_path.name}' is not a JSON list. Skipping.", "WARNING")

        self.logger.init_log(f"{log_prefix}Compiled {len(compiled_data)} entries from {len(json_files)} file(s).",
                             "INFO")
        return compiled_data

    def _parse_template(self, item_dict: Any) -> Optional[ItemTemplate]:
        if not isinstance(item_dict, dict):
            self.logger.init_log(f"Data Load (items/): Skipping non-object entry {item_dict!r}.", "WARNING")
            return None

        item_id = item_dict.get("id")
        subtype = item_dict.get("subtype")
        item_type = ItemSubtype.type_of(subtype)
        if not isinstance(item_id, str) or not item_id or item_type is None:
            self.logger.init_log(f"Data Load (items/): Skipping invalid template {item_dict!r}.", "WARNING")
            return None

        try:
            return ItemTemplate(
                id=item_id,
                name=str(item_dict.get("name", item_id)),
                icon=str(item_dict.get("icon", "")),
                type=item_type,
                subtype=subtype,
                value=int(item_dict.get("value", 0)),
                transform_id=str(item_dict.get("transform_id", "")),
                category=str(item_dict.get("category", "")),
                base_exp=int(item_dict.get("base_exp", 0)),
                grow_time=int(item_dict.get("grow_time", 0)),
            )
        except (TypeError, ValueError) as e:
            self.logger.init_log(f"Data Load (items/): Skipping template {item_id}: {e}.", "WARNING")
            return None

    def _load_catalog(self) -> ItemCatalog:
        data = self._load_and_compile_json_from_directory("items")
        if not data:
            self.logger.init_log("Data Load (items/): Using default fallback data.", "WARNING")
            data = DEFAULT_ITEM_DATA

        templates: Dict[str, ItemTemplate] = {}
        for item_dict in data:
            template = self._parse_template(item_dict)
            if template is None:
                continue
            if template.id in templates:
                self.logger.init_log(f"Data Load (items/): Duplicate template id {template.id}; keeping the first.",
                                     "WARNING")
                continue
            templates[template.id] = template

        if not any(t.subtype == ItemSubtype.GROUND for t in templates.values()):
            self.logger.init_log("Data Load (items/): No Ground template found. Adding the default one.", "ERROR")
            ground = self._parse_template(DEFAULT_ITEM_DATA[0])
            templates[ground.id] = ground

        catalog = ItemCatalog(templates.values())
        for template in catalog.get_all_templates():
            if template.subtype in ItemSubtype.TRANSFORMS and not catalog.transform(template).is_successful():
                self.logger.init_log(
                    f"Data Load (items/): {template.name} ({template.id}) has no valid transform target "
                    f"'{template.transform_id}'. It cannot be used.", "WARNING")
        return catalog

    def _load_store_definitions(self) -> Dict[int, StoreDefinition]:
        data = self._load_json_file("stores.json", DEFAULT_STORE_DATA)
        if not isinstance(data, list):
            self.logger.init_log("Data Load (stores.json): Expected a JSON list. Using default fallback data.", "ERROR")
            data = DEFAULT_STORE_DATA

        definitions: Dict[int, StoreDefinition] = {}
        for store_dict in data:
            try:
                stock = tuple((str(item_id), int(quantity)) for item_id, quantity in store_dict.get("stock", {}).items())
                definition = StoreDefinition(
                    store_id=int(store_dict["store_id"]),
                    store_name=str(store_dict.get("store_name", "")),
                    buy_multiplier=float(store_dict.get("buy_multiplier", 2)),
                    sell_multiplier=float(store_dict.get("sell_multiplier", 1)),
                    upgrade_multiplier=float(store_dict.get("upgrade_multiplier", 1)),
                    restock_interval=int(store_dict.get("restock_interval", 300)),
                    stock=stock,
                )
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                self.logger.init_log(f"Data Load (stores.json): Skipping invalid store {store_dict!r}: {e}.",
                                     "WARNING")
                continue

            unknown = [item_id for item_id, _ in definition.stock if self.catalog.get_inventory_template(item_id) is None]
            if unknown:
                self.logger.init_log(
                    f"Data Load (stores.json): Store {definition.store_id} stocks unknown items {unknown}. "
                    "They will be skipped.", "WARNING")
            definitions[definition.store_id] = definition

        return definitions
