import pathlib

import pytest

import zengarden
from zengarden.helpers import DataHelper, GameStateHelper, LockHelper, SyncHelper
from zengarden.models import Garden, Inventory, Store
from zengarden.repositories import create_db_engine, create_session_factory

DATA_PATH = pathlib.Path(zengarden.__file__).resolve().parent / "data"

NOW = 1_700_000_000

APPLE_SEED = "1010001"
APPLE = "0010001"
HARVESTED_APPLE = "1020001"
CARROT_SEED = "1010004"
BENCH_BLUEPRINT = "1030001"
BENCH = "0030001"


class FakeConfigValue:
    """Stands in for one Red Config value: awaiting it reads, .set() writes."""

    def __init__(self, value):
        self.value = value

    async def __call__(self):
        return self.value

    async def set(self, value):
        self.value = value


class FakeConfig:
    def __init__(self, game_state=None):
        self.game_state = FakeConfigValue(game_state if game_state is not None else {})


@pytest.fixture(scope="session")
def data_loader():
    loader = DataHelper(DATA_PATH)
    loader.load_all_data()
    return loader


@pytest.fixture
def catalog(data_loader):
    return data_loader.catalog


@pytest.fixture
def store_definitions(data_loader):
    return data_loader.store_definitions


@pytest.fixture
def inventory(catalog):
    inv = Inventory("alice", 100)
    inv.add_item(catalog.get_template(APPLE_SEED), 3)
    return inv


@pytest.fixture
def store(catalog, store_definitions):
    return Store.from_definition(store_definitions[0], catalog, now=NOW)


@pytest.fixture
def garden(catalog):
    return Garden(catalog, "alice", now=NOW)


@pytest.fixture
def engine(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'zengarden.db'}")
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def game_state(catalog, store_definitions):
    return GameStateHelper(FakeConfig(), catalog, store_definitions)


@pytest.fixture
def lock_helper():
    return LockHelper()


@pytest.fixture
def sync_helper(session_factory, game_state):
    return SyncHelper(session_factory, game_state, enabled=True)
