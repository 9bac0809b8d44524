import asyncio

import pytest

from zengarden.helpers import GardenHelper
from zengarden.helpers.sync_helper import CLOUD_UNAVAILABLE_MESSAGE, RESYNC_MESSAGE
from zengarden.models import ItemSubtype

from conftest import APPLE, APPLE_SEED, BENCH, BENCH_BLUEPRINT, CARROT_SEED, HARVESTED_APPLE, NOW


@pytest.fixture
def helper(game_state, sync_helper, lock_helper):
    return GardenHelper(game_state, sync_helper, lock_helper)


@pytest.fixture
def alice(game_state, catalog):
    """A player holding three apple seeds and a bench blueprint before any cloud save."""
    inventory = game_state.get_inventory("alice")
    inventory.add_item(catalog.get_template(APPLE_SEED), 3)
    inventory.add_item(catalog.get_template(BENCH_BLUEPRINT), 1)
    return "alice"


def _quantity(item_holder, identifier):
    response = item_holder.get_item(identifier)
    return response.payload.quantity if response.is_successful() else 0


def _durable(sync_helper, user_id):
    inventory, garden, _ = sync_helper.load_account(user_id)
    return inventory, garden


def test_plant_is_mirrored(helper, sync_helper, game_state, alice):
    response = asyncio.run(helper.plant(alice, APPLE_SEED, 0, 0, now=NOW))

    assert response.is_successful()
    assert game_state.get_garden(alice).get_plot_by_row_and_column(0, 0).item.item_data.id == APPLE

    inventory, garden = _durable(sync_helper, alice)
    assert _quantity(inventory, APPLE_SEED) == 2
    assert garden.get_plot_by_row_and_column(0, 0).item.item_data.id == APPLE
    assert garden.get_plot_by_row_and_column(0, 0).plant_time == NOW


def test_plant_on_occupied_plot_fails(helper, alice):
    asyncio.run(helper.plant(alice, APPLE_SEED, 0, 0, now=NOW))

    response = asyncio.run(helper.plant(alice, APPLE_SEED, 0, 0, now=NOW))

    assert not response.is_successful()


def test_harvest_before_ready_fails(helper, alice):
    asyncio.run(helper.plant(alice, APPLE_SEED, 0, 0, now=NOW))

    response = asyncio.run(helper.harvest(alice, 0, 0, now=NOW + 10))

    assert not response.is_successful()
    assert "not ready" in response.first_error()


def test_harvest_credits_item_and_xp(helper, sync_helper, game_state, alice):
    asyncio.run(helper.plant(alice, APPLE_SEED, 0, 0, now=NOW))

    response = asyncio.run(helper.harvest(alice, 0, 0, now=NOW + 300))

    assert response.is_successful()
    assert response.payload["xp_gained"] == 10
    assert game_state.get_profile(alice).xp == 10
    assert _quantity(game_state.get_inventory(alice), HARVESTED_APPLE) == 1

    inventory, garden = _durable(sync_helper, alice)
    assert _quantity(inventory, HARVESTED_APPLE) == 1
    assert garden.get_plot_by_row_and_column(0, 0).get_item_subtype() == ItemSubtype.GROUND


def test_instant_grow_skips_the_timer(game_state, sync_helper, lock_helper, alice):
    helper = GardenHelper(game_state, sync_helper, lock_helper, instant_grow=True)
    asyncio.run(helper.plant(alice, APPLE_SEED, 0, 0, now=NOW))

    assert asyncio.run(helper.harvest(alice, 0, 0, now=NOW)).is_successful()


def test_plant_all_then_harvest_all(helper, sync_helper, game_state, alice):
    planted = asyncio.run(helper.plant_all(alice, APPLE_SEED, now=NOW))

    assert planted.is_successful()
    assert len(planted.payload) == 3
    assert helper.list_ready_plots(alice, now=NOW + 300) == [(0, 0), (0, 1), (0, 2)]

    harvested = asyncio.run(helper.harvest_all(alice, now=NOW + 300))

    assert harvested.is_successful()
    assert harvested.payload["harvested"] == {"harvested apple": 3}
    assert harvested.payload["xp_gained"] == 30

    inventory, garden = _durable(sync_helper, alice)
    assert _quantity(inventory, APPLE_SEED) == 0
    assert _quantity(inventory, HARVESTED_APPLE) == 3
    assert garden.get_plot_by_row_and_column(0, 2).get_item_subtype() == ItemSubtype.GROUND


def test_plant_all_without_seeds_fails(helper, alice):
    response = asyncio.run(helper.plant_all(alice, CARROT_SEED, now=NOW))

    assert not response.is_successful()


def test_decoration_round_trip(helper, sync_helper, game_state, alice):
    placed = asyncio.run(helper.place_decoration(alice, BENCH_BLUEPRINT, 2, 2, now=NOW))
    assert placed.is_successful()
    _, garden = _durable(sync_helper, alice)
    assert garden.get_plot_by_row_and_column(2, 2).item.item_data.id == BENCH

    repackaged = asyncio.run(helper.repackage(alice, 2, 2, now=NOW + 1))

    assert repackaged.is_successful()
    assert _quantity(game_state.get_inventory(alice), BENCH_BLUEPRINT) == 1
    inventory, garden = _durable(sync_helper, alice)
    assert _quantity(inventory, BENCH_BLUEPRINT) == 1
    assert garden.get_plot_by_row_and_column(2, 2).get_item_subtype() == ItemSubtype.GROUND


def test_repackage_rejects_plants(helper, alice):
    asyncio.run(helper.plant(alice, APPLE_SEED, 1, 1, now=NOW))

    assert not asyncio.run(helper.repackage(alice, 1, 1, now=NOW)).is_successful()


def test_expand_is_gated_by_level(helper, sync_helper, game_state, alice):
    assert not asyncio.run(helper.expand(alice, "row", now=NOW)).is_successful()

    game_state.get_profile(alice).add_xp(500)
    response = asyncio.run(helper.expand(alice, "row", now=NOW))

    assert response.is_successful()
    assert response.payload == (6, 5)
    _, garden = _durable(sync_helper, alice)
    assert (garden.get_rows(), garden.get_cols()) == (6, 5)


def test_expand_rejects_unknown_dimension(helper, alice):
    response = asyncio.run(helper.expand(alice, "diagonal", now=NOW))

    assert not response.is_successful()
    assert "Unknown dimension" in response.first_error()


def test_shrink_refunds_decorations(helper, sync_helper, game_state, alice):
    asyncio.run(helper.place_decoration(alice, BENCH_BLUEPRINT, 0, 4, now=NOW))
    asyncio.run(helper.plant(alice, APPLE_SEED, 1, 4, now=NOW))

    response = asyncio.run(helper.shrink(alice, "column", now=NOW))

    assert response.is_successful()
    assert response.payload["size"] == (5, 4)
    assert response.payload["refunded"] == {"bench blueprint": 1}
    assert _quantity(game_state.get_inventory(alice), BENCH_BLUEPRINT) == 1

    inventory, garden = _durable(sync_helper, alice)
    assert garden.get_cols() == 4
    assert _quantity(inventory, BENCH_BLUEPRINT) == 1
    assert _quantity(inventory, APPLE_SEED) == 2


def test_swap_moves_plot_contents(helper, sync_helper, game_state, alice):
    asyncio.run(helper.plant(alice, APPLE_SEED, 0, 0, now=NOW))

    response = asyncio.run(helper.swap(alice, (0, 0), (3, 4)))

    assert response.is_successful()
    assert game_state.get_garden(alice).get_plot_by_row_and_column(3, 4).item.item_data.id == APPLE
    _, garden = _durable(sync_helper, alice)
    assert garden.get_plot_by_row_and_column(3, 4).item.item_data.id == APPLE
    assert garden.get_plot_by_row_and_column(0, 0).get_item_subtype() == ItemSubtype.GROUND


def test_durable_failure_reloads_cloud_copy(helper, sync_helper, game_state, alice):
    asyncio.run(sync_helper.ensure_account(alice))
    durable_inventory = sync_helper.inventory_repository.get_inventory_by_owner(alice)
    sync_helper.inventory_item_repository.delete_inventory_item_by_owner_id(durable_inventory.id, APPLE_SEED)

    response = asyncio.run(helper.plant(alice, APPLE_SEED, 0, 0, now=NOW))

    assert not response.is_successful()
    assert response.first_error() == RESYNC_MESSAGE
    assert _quantity(game_state.get_inventory(alice), APPLE_SEED) == 0
    assert game_state.get_garden(alice).get_plot_by_row_and_column(0, 0).get_item_subtype() == ItemSubtype.GROUND


def test_unreachable_database_blocks_actions(helper, sync_helper, game_state, alice, monkeypatch):
    def unreachable(user_id):
        raise ConnectionError("database is down")

    monkeypatch.setattr(sync_helper, "initialize_account", unreachable)

    response = asyncio.run(helper.plant(alice, APPLE_SEED, 0, 0, now=NOW))

    assert response.first_error() == CLOUD_UNAVAILABLE_MESSAGE
    assert _quantity(game_state.get_inventory(alice), APPLE_SEED) == 3


def test_render_garden_shows_sprouts(helper, alice):
    asyncio.run(helper.plant(alice, APPLE_SEED, 0, 0, now=NOW))

    growing = helper.render_garden(alice, now=NOW).splitlines()
    grown = helper.render_garden(alice, now=NOW + 300).splitlines()

    assert len(growing) == 5
    assert growing[0] == "🌱" + "🟫" * 4
    assert grown[0] == "🌳" + "🟫" * 4


def test_garden_summary(helper, alice):
    asyncio.run(helper.plant(alice, APPLE_SEED, 0, 0, now=NOW))
    asyncio.run(helper.place_decoration(alice, BENCH_BLUEPRINT, 0, 1, now=NOW))

    summary = helper.get_garden_summary(alice, now=NOW + 300)

    assert (summary["rows"], summary["cols"]) == (5, 5)
    assert summary["subtypes"][ItemSubtype.PLANT] == 1
    assert summary["subtypes"][ItemSubtype.DECORATION] == 1
    assert summary["subtypes"][ItemSubtype.GROUND] == 23
    assert summary["ready"] == 1


def test_profile_edits(helper, game_state, alice):
    assert helper.set_icon(alice, " 🌻 ").payload == "🌻"
    assert helper.set_username(alice, "Alice").is_successful()
    assert not helper.set_username(alice, "   ").is_successful()
    assert not helper.set_icon(alice, "x" * 33).is_successful()

    game_state.get_profile(alice).add_xp(250)
    view = helper.get_user_profile_view(alice)

    assert (view.username, view.icon, view.xp, view.level) == ("Alice", "🌻", 250, 3)
    assert game_state.get_user_data(alice)["profile"]["username"] == "Alice"


def _clear_durable_plot(sync_helper, catalog, user_id, row, col):
    garden = sync_helper.garden_repository.get_garden_by_owner(user_id)
    plot = sync_helper.garden_repository.get_plot(garden.id, row, col)
    sync_helper.placed_item_repository.replace_placed_item_by_plot_id(plot.id, catalog.get_ground_template().id)


def test_failed_harvest_awards_no_xp(helper, sync_helper, game_state, catalog, alice):
    asyncio.run(helper.plant(alice, APPLE_SEED, 0, 0, now=NOW))
    _clear_durable_plot(sync_helper, catalog, alice, 0, 0)

    response = asyncio.run(helper.harvest(alice, 0, 0, now=NOW + 300))

    assert response.first_error() == RESYNC_MESSAGE
    assert game_state.get_profile(alice).xp == 0
    assert game_state.get_user_data(alice)["profile"]["xp"] == 0
    assert _quantity(game_state.get_inventory(alice), HARVESTED_APPLE) == 0


def test_failed_harvest_all_awards_no_xp(helper, sync_helper, game_state, catalog, alice):
    asyncio.run(helper.plant_all(alice, APPLE_SEED, now=NOW))
    _clear_durable_plot(sync_helper, catalog, alice, 0, 2)

    response = asyncio.run(helper.harvest_all(alice, now=NOW + 300))

    assert response.first_error() == RESYNC_MESSAGE
    assert game_state.get_profile(alice).xp == 0
    assert helper.get_user_profile_view(alice).level == 1
