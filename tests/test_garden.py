from zengarden.models import Garden, ItemSubtype, Plot, max_dimension

from conftest import APPLE, APPLE_SEED, BENCH, BENCH_BLUEPRINT, HARVESTED_APPLE, NOW

GROW_TIME = 300


def test_new_garden_is_all_ground(garden):
    assert (garden.get_rows(), garden.get_cols()) == (5, 5)
    assert garden.size() == 25
    assert all(plot.get_item_subtype() == ItemSubtype.GROUND for row in garden.get_plots() for plot in row)


def test_plant_seed_consumes_seed_and_stamps_time(garden, inventory):
    response = garden.plant_seed(inventory, APPLE_SEED, (1, 2), NOW)

    assert response.is_successful()
    plot = garden.get_plot_by_row_and_column(1, 2)
    assert plot.item.item_data.id == APPLE
    assert plot.get_plant_time() == NOW
    assert inventory.get_item(APPLE_SEED).payload.quantity == 2


def test_plant_on_occupied_plot_fails(garden, inventory):
    garden.plant_seed(inventory, APPLE_SEED, (0, 0), NOW)

    response = garden.plant_seed(inventory, APPLE_SEED, (0, 0), NOW)

    assert not response.is_successful()
    assert inventory.get_item(APPLE_SEED).payload.quantity == 2


def test_plant_wrong_subtype_fails(garden, inventory, catalog):
    inventory.add_item(catalog.get_template(BENCH_BLUEPRINT), 1)

    assert not garden.plant_seed(inventory, BENCH_BLUEPRINT, (0, 0), NOW).is_successful()
    assert not garden.place_decoration(inventory, APPLE_SEED, (0, 0), NOW).is_successful()
    assert inventory.get_item(BENCH_BLUEPRINT).payload.quantity == 1


def test_plant_out_of_bounds_fails(garden, inventory):
    assert not garden.plant_seed(inventory, APPLE_SEED, (5, 0), NOW).is_successful()
    assert not garden.plant_seed(inventory, APPLE_SEED, (-1, 0), NOW).is_successful()
    assert inventory.get_item(APPLE_SEED).payload.quantity == 3


def test_harvest_waits_for_grow_time(garden, inventory):
    garden.plant_seed(inventory, APPLE_SEED, (0, 0), NOW)

    early = garden.harvest_plot((0, 0), NOW + GROW_TIME - 1)
    assert not early.is_successful()
    assert garden.get_plot_by_row_and_column(0, 0).item.item_data.id == APPLE

    ready = garden.harvest_plot((0, 0), NOW + GROW_TIME)
    assert ready.is_successful()
    assert ready.payload["harvested_item_template"].id == HARVESTED_APPLE
    assert garden.get_plot_by_row_and_column(0, 0).get_item_subtype() == ItemSubtype.GROUND


def test_instant_grow_skips_timer(garden, inventory):
    garden.plant_seed(inventory, APPLE_SEED, (0, 0), NOW)
    assert garden.harvest_plot((0, 0), NOW, instant_grow=True).is_successful()


def test_harvest_ground_fails(garden):
    assert not garden.harvest_plot((0, 0), NOW).is_successful()


def test_place_and_repackage_decoration(garden, inventory, catalog):
    inventory.add_item(catalog.get_template(BENCH_BLUEPRINT), 1)

    placed = garden.place_decoration(inventory, BENCH_BLUEPRINT, (2, 2), NOW)
    assert placed.is_successful()
    assert garden.get_plot_by_row_and_column(2, 2).item.item_data.id == BENCH
    assert not inventory.contains(BENCH_BLUEPRINT).payload

    repackaged = garden.repackage_plot((2, 2), NOW)
    assert repackaged.is_successful()
    assert repackaged.payload["blueprint_item_template"].id == BENCH_BLUEPRINT
    assert garden.get_plot_by_row_and_column(2, 2).get_item_subtype() == ItemSubtype.GROUND


def test_repackage_plant_fails(garden, inventory):
    garden.plant_seed(inventory, APPLE_SEED, (0, 0), NOW)
    assert not garden.repackage_plot((0, 0), NOW).is_successful()


def test_swap_plots_updates_positions(garden, inventory):
    garden.plant_seed(inventory, APPLE_SEED, (0, 0), NOW)
    planted = garden.get_plot_by_row_and_column(0, 0)

    response = garden.swap_plots((0, 0), (4, 4))

    assert response.is_successful()
    assert garden.get_plot_by_row_and_column(4, 4) is planted
    assert garden.get_plot_position(planted) == (4, 4)
    assert garden.get_plot_by_row_and_column(0, 0).get_item_subtype() == ItemSubtype.GROUND


def test_swap_with_invalid_plot_changes_nothing(garden):
    first = garden.get_plot_by_row_and_column(0, 0)
    assert not garden.swap_plots((0, 0), (9, 9)).is_successful()
    assert garden.get_plot_position(first) == (0, 0)


def test_expansion_is_level_gated(garden):
    assert max_dimension(1) == 5
    assert not garden.add_row(1, NOW).is_successful()

    assert garden.add_row(5, NOW).is_successful()
    assert garden.add_column(5, NOW).is_successful()
    assert (garden.get_rows(), garden.get_cols()) == (6, 6)
    assert not garden.add_row(5, NOW).is_successful()


def test_remove_row_reports_discarded_plots(garden, inventory):
    garden.plant_seed(inventory, APPLE_SEED, (4, 1), NOW)

    response = garden.remove_row()

    assert response.is_successful()
    assert len(response.payload) == 5
    assert any(plot.item.item_data.id == APPLE for plot in response.payload)
    assert garden.get_rows() == 4


def test_cannot_remove_last_row_or_column(catalog):
    tiny = Garden(catalog, "alice", rows=1, cols=1, now=NOW)
    assert not tiny.remove_row().is_successful()
    assert not tiny.remove_column().is_successful()


def test_plant_all_stops_when_seeds_run_out(garden, inventory):
    response = garden.plant_all(inventory, APPLE_SEED, NOW)

    assert response.is_successful()
    assert len(response.payload) == 3
    assert not inventory.contains(APPLE_SEED).payload
    planted = [plot for row in garden.get_plots() for plot in row if plot.get_item_subtype() == ItemSubtype.PLANT]
    assert len(planted) == 3


def test_harvest_all_collects_ready_plants(garden, inventory):
    garden.plant_all(inventory, APPLE_SEED, NOW)

    response = garden.harvest_all(inventory, NOW + GROW_TIME)

    assert response.is_successful()
    assert len(response.payload) == 3
    assert inventory.get_item(HARVESTED_APPLE).payload.quantity == 3


def test_harvest_all_with_nothing_ready_fails(garden, inventory):
    garden.plant_seed(inventory, APPLE_SEED, (0, 0), NOW)
    assert not garden.harvest_all(inventory, NOW + 1).is_successful()


def test_plot_remaining_grow_time(catalog, garden, inventory):
    garden.plant_seed(inventory, APPLE_SEED, (0, 0), NOW)
    plot = garden.get_plot_by_row_and_column(0, 0)

    assert plot.get_remaining_grow_time(NOW + 100) == GROW_TIME - 100
    assert plot.get_remaining_grow_time(NOW + 10_000) == 0
    assert Plot.empty(catalog, NOW).get_remaining_grow_time(NOW) == 0
