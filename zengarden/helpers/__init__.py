from .time_helper import TimeHelper
from .lock_helper import LockHelper
from .logging_helper import LoggingHelper
from .catalog_helper import ItemCatalog
from .data_helper import DataHelper
from .game_state_helper import GameStateHelper
from .sync_helper import SyncHelper
from .backup_helper import BackupHelper, BackupError
from .garden_helper import GardenHelper
from .shop_helper import ShopHelper
