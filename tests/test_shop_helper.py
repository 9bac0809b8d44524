import asyncio
import time

import pytest

from zengarden.helpers import ShopHelper
from zengarden.helpers.sync_helper import RESYNC_MESSAGE

from conftest import APPLE_SEED, HARVESTED_APPLE, NOW


@pytest.fixture
def shop(game_state, sync_helper, lock_helper):
    return ShopHelper(game_state, sync_helper, lock_helper)


def _quantity(item_holder, identifier):
    response = item_holder.get_item(identifier)
    return response.payload.quantity if response.is_successful() else 0


def test_buy_is_mirrored(shop, sync_helper, game_state):
    response = asyncio.run(shop.buy("alice", 0, APPLE_SEED, 2))

    assert response.is_successful()
    assert response.payload["total_cost"] == 40
    assert game_state.get_inventory("alice").get_gold() == 60

    inventory, _, stores = sync_helper.load_account("alice")
    assert inventory.get_gold() == 60
    assert _quantity(inventory, APPLE_SEED) == 2
    assert _quantity(stores[0], APPLE_SEED) == 8


def test_buy_by_name(shop, game_state):
    assert asyncio.run(shop.buy("alice", 0, "apple seed", 1)).is_successful()
    assert _quantity(game_state.get_inventory("alice"), APPLE_SEED) == 1


def test_unaffordable_buy_changes_nothing(shop, sync_helper, game_state):
    response = asyncio.run(shop.buy("alice", 0, APPLE_SEED, 6))

    assert not response.is_successful()
    assert game_state.get_inventory("alice").get_gold() == 100
    inventory, _, stores = sync_helper.load_account("alice")
    assert inventory.get_gold() == 100
    assert _quantity(stores[0], APPLE_SEED) == 10


def test_unknown_store(shop):
    response = asyncio.run(shop.buy("alice", 42, APPLE_SEED, 1))

    assert not response.is_successful()
    assert "Store 42" in response.first_error()


def test_sell_is_mirrored(shop, sync_helper, game_state, catalog):
    game_state.get_inventory("alice").add_item(catalog.get_template(HARVESTED_APPLE), 2)

    response = asyncio.run(shop.sell("alice", 0, HARVESTED_APPLE, 2))

    assert response.is_successful()
    assert response.payload["total_earnings"] == 100
    inventory, _, stores = sync_helper.load_account("alice")
    assert inventory.get_gold() == 200
    assert _quantity(inventory, HARVESTED_APPLE) == 0
    assert _quantity(stores[0], HARVESTED_APPLE) == 2


def test_durable_failure_reloads_cloud_copy(shop, sync_helper, game_state):
    asyncio.run(sync_helper.ensure_account("alice"))
    # The durable balance drifted below the local one.
    sync_helper.set_gold("alice", 0)

    response = asyncio.run(shop.buy("alice", 0, APPLE_SEED, 1))

    assert response.first_error() == RESYNC_MESSAGE
    assert game_state.get_inventory("alice").get_gold() == 0
    assert _quantity(game_state.get_inventory("alice"), APPLE_SEED) == 0
    assert _quantity(game_state.get_store("alice", 0), APPLE_SEED) == 10


def test_forced_restock_is_mirrored(shop, sync_helper, game_state):
    asyncio.run(shop.buy("alice", 0, APPLE_SEED, 2))

    response = asyncio.run(shop.restock("alice", 0, now=NOW, force=True))

    assert response.is_successful()
    assert response.payload == {APPLE_SEED: 2}
    _, _, stores = sync_helper.load_account("alice")
    assert _quantity(stores[0], APPLE_SEED) == 10
    assert stores[0].get_restock_time() == NOW + 300


def test_restock_waits_for_timer(shop):
    asyncio.run(shop.buy("alice", 0, APPLE_SEED, 1))

    response = asyncio.run(shop.restock("alice", 0, now=NOW))

    assert not response.is_successful()
    assert "Restock available" in response.first_error()


def test_full_store_has_nothing_to_restock(shop):
    response = asyncio.run(shop.restock("alice", 0, now=NOW, force=True))

    assert not response.is_successful()


def test_restock_due_stores(shop, sync_helper, game_state):
    asyncio.run(shop.buy("alice", 0, APPLE_SEED, 3))
    game_state.get_store("bob", 0)
    later = time.time() + 3600

    restocked = asyncio.run(shop.restock_due_stores(now=later))

    assert restocked == ["alice:0"]
    assert _quantity(game_state.get_store("alice", 0), APPLE_SEED) == 10
    _, _, stores = sync_helper.load_account("alice")
    assert _quantity(stores[0], APPLE_SEED) == 10
    assert stores[0].get_restock_time() == later + 300


def test_set_gold(shop, sync_helper, game_state):
    assert not asyncio.run(shop.set_gold("alice", -5)).is_successful()

    response = asyncio.run(shop.set_gold("alice", 999))

    assert response.payload == 999
    assert game_state.get_inventory("alice").get_gold() == 999
    inventory, _, _ = sync_helper.load_account("alice")
    assert inventory.get_gold() == 999
