import asyncio

import pytest

from zengarden.helpers import SyncHelper
from zengarden.helpers.sync_helper import CLOUD_UNAVAILABLE_MESSAGE, RESTORE_FAILED_MESSAGE
from zengarden.repositories import InvalidQuantityError

from conftest import APPLE, APPLE_SEED, CARROT_SEED, NOW


def _quantity(item_holder, identifier):
    response = item_holder.get_item(identifier)
    return response.payload.quantity if response.is_successful() else 0


def test_initialize_account_writes_once(sync_helper, game_state):
    game_state.get_inventory("alice").add_gold(25)

    assert sync_helper.initialize_account("alice") is True
    assert sync_helper.initialize_account("alice") is False
    assert sync_helper.account_exists("alice")
    assert not sync_helper.account_exists("bob")


def test_load_account_round_trip(sync_helper, game_state, catalog):
    inventory = game_state.get_inventory("alice")
    inventory.add_item(catalog.get_template(APPLE_SEED), 3)
    garden = game_state.get_garden("alice")
    garden.plant_seed(inventory, APPLE_SEED, (1, 2), NOW)
    sync_helper.initialize_account("alice")

    loaded_inventory, loaded_garden, loaded_stores = sync_helper.load_account("alice")

    assert loaded_inventory.get_gold() == inventory.get_gold()
    assert _quantity(loaded_inventory, APPLE_SEED) == 2
    assert (loaded_garden.get_rows(), loaded_garden.get_cols()) == (5, 5)
    plot = loaded_garden.get_plot_by_row_and_column(1, 2)
    assert plot.item.item_data.id == APPLE
    assert plot.plant_time == NOW
    assert plot.plot_id == garden.get_plot_by_row_and_column(1, 2).plot_id
    assert _quantity(loaded_stores[0], APPLE_SEED) == 10


def test_load_account_without_account(sync_helper):
    assert sync_helper.load_account("nobody") is None


def test_run_is_a_no_op_when_disabled(session_factory, game_state):
    disabled = SyncHelper(session_factory, game_state, enabled=False)

    def explode(user_id):
        raise AssertionError("should not run")

    assert asyncio.run(disabled.run("alice", explode)) is True
    assert asyncio.run(disabled.ensure_account("alice")) is True
    assert not disabled.account_exists("alice")


def test_failed_operation_resyncs_local_state(sync_helper, game_state):
    asyncio.run(sync_helper.ensure_account("alice"))
    inventory = game_state.get_inventory("alice")
    durable_gold = inventory.get_gold()

    inventory.add_gold(500)

    def failing(user_id):
        raise RuntimeError("connection dropped")

    assert asyncio.run(sync_helper.run("alice", failing)) is False
    assert game_state.get_inventory("alice").get_gold() == durable_gold
    assert game_state.get_user_data("alice")["inventory"]["gold"] == durable_gold


def test_ensure_account_prefers_existing_durable_copy(sync_helper, session_factory, game_state, catalog):
    sync_helper.initialize_account("alice")

    # A fresh process: local state knows nothing of the durable account.
    game_state.get_inventory("alice").add_item(catalog.get_template(CARROT_SEED), 4)
    restarted = SyncHelper(session_factory, game_state, enabled=True)

    assert asyncio.run(restarted.ensure_account("alice")) is True
    assert _quantity(game_state.get_inventory("alice"), CARROT_SEED) == 0


def test_durable_purchase_is_atomic(sync_helper, game_state):
    sync_helper.initialize_account("alice")

    sync_helper.purchase("alice", 0, APPLE_SEED, 2, 40)
    inventory, _, stores = sync_helper.load_account("alice")
    assert inventory.get_gold() == game_state.get_inventory("alice").get_gold() - 40
    assert _quantity(inventory, APPLE_SEED) == 2
    assert _quantity(stores[0], APPLE_SEED) == 8

    # More than the store holds: nothing of the purchase sticks, not even the gold debit.
    with pytest.raises(InvalidQuantityError):
        sync_helper.purchase("alice", 0, APPLE_SEED, 50, 10)
    after, _, after_stores = sync_helper.load_account("alice")
    assert after.get_gold() == inventory.get_gold()
    assert _quantity(after_stores[0], APPLE_SEED) == 8


def test_overwrite_account_replaces_durable_rows(sync_helper, game_state, catalog):
    sync_helper.initialize_account("alice")
    inventory = game_state.get_inventory("alice")
    inventory.add_item(catalog.get_template(CARROT_SEED), 6)
    game_state.get_garden("alice").add_row(10, NOW)

    sync_helper.overwrite_account("alice")

    durable_inventory, durable_garden, durable_stores = sync_helper.load_account("alice")
    assert _quantity(durable_inventory, CARROT_SEED) == 6
    assert durable_garden.get_rows() == 6
    assert set(durable_stores) == {0}


def test_push_accounts_counts_successes(sync_helper, game_state):
    game_state.get_inventory("alice")
    game_state.get_inventory("bob")

    assert asyncio.run(sync_helper.push_accounts(["alice", "bob"])) == 2
    assert sync_helper.account_exists("alice")
    assert sync_helper.account_exists("bob")


def test_restore_account_overwrites_both_copies(sync_helper, game_state):
    backup = game_state.export_account("alice")
    game_state.get_inventory("alice").add_gold(25)
    asyncio.run(sync_helper.ensure_account("alice"))

    response = asyncio.run(sync_helper.restore_account("alice", backup))

    assert response.is_successful()
    assert game_state.get_inventory("alice").get_gold() == 100
    inventory, _, _ = sync_helper.load_account("alice")
    assert inventory.get_gold() == 100


def test_failed_restore_keeps_previous_game(sync_helper, game_state, monkeypatch):
    backup = game_state.export_account("alice")
    game_state.get_inventory("alice").add_gold(25)
    asyncio.run(sync_helper.ensure_account("alice"))

    def unreachable(user_id):
        raise ConnectionError("database is down")

    monkeypatch.setattr(sync_helper, "overwrite_account", unreachable)
    monkeypatch.setattr(sync_helper, "load_account", unreachable)

    response = asyncio.run(sync_helper.restore_account("alice", backup))

    assert response.first_error() == RESTORE_FAILED_MESSAGE
    assert game_state.get_inventory("alice").get_gold() == 125


def test_restore_needs_the_database(sync_helper, game_state, monkeypatch):
    backup = game_state.export_account("alice")
    game_state.get_inventory("alice").add_gold(25)

    def unreachable(user_id):
        raise ConnectionError("database is down")

    monkeypatch.setattr(sync_helper, "initialize_account", unreachable)

    response = asyncio.run(sync_helper.restore_account("alice", backup))

    assert response.first_error() == CLOUD_UNAVAILABLE_MESSAGE
    assert game_state.get_inventory("alice").get_gold() == 125
