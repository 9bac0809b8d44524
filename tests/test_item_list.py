from dataclasses import replace

from zengarden.models import InventoryItem, ItemList, ItemSubtype

from conftest import APPLE, APPLE_SEED, BENCH_BLUEPRINT, CARROT_SEED, HARVESTED_APPLE


def test_add_item_merges_by_template(catalog):
    items = ItemList()
    seed = catalog.get_template(APPLE_SEED)

    first = items.add_item(seed, 2)
    second = items.add_item(seed, 3)

    assert first.is_successful() and second.is_successful()
    assert items.size() == 1
    assert items.get_item(APPLE_SEED).payload.quantity == 5


def test_add_item_rejects_invalid_quantities_and_placed_templates(catalog):
    items = ItemList()
    seed = catalog.get_template(APPLE_SEED)

    assert not items.add_item(seed, 0).is_successful()
    assert not items.add_item(seed, -1).is_successful()
    assert not items.add_item(seed, True).is_successful()
    assert not items.add_item(catalog.get_template(APPLE), 1).is_successful()
    assert items.size() == 0


def test_get_item_by_name_or_id(catalog):
    items = ItemList([InventoryItem(catalog.get_template(APPLE_SEED), 1)])

    assert items.get_item("apple seed").payload.item_data.id == APPLE_SEED
    assert items.get_item(APPLE_SEED).is_successful()
    assert not items.get_item("banana seed").is_successful()


def test_update_quantity_to_zero_removes_entry(catalog):
    items = ItemList()
    items.add_item(catalog.get_template(APPLE_SEED), 2)

    response = items.update_quantity(APPLE_SEED, -2)

    assert response.is_successful()
    assert response.payload.quantity == 0
    assert not items.contains(APPLE_SEED).payload


def test_trash_item_requires_enough(catalog):
    items = ItemList()
    items.add_item(catalog.get_template(APPLE_SEED), 2)

    assert not items.trash_item(APPLE_SEED, 3).is_successful()
    assert items.get_item(APPLE_SEED).payload.quantity == 2
    assert items.trash_item(APPLE_SEED, 1).is_successful()
    assert items.get_item(APPLE_SEED).payload.quantity == 1


def test_use_item_consumes_and_transforms(catalog):
    items = ItemList()
    items.add_item(catalog.get_template(APPLE_SEED), 1)

    response = items.use_item(APPLE_SEED, 1, catalog)

    assert response.is_successful()
    assert response.payload["new_template"].id == APPLE
    assert items.size() == 0


def test_harvested_items_cannot_be_used(catalog):
    items = ItemList()
    items.add_item(catalog.get_template(HARVESTED_APPLE), 1)

    response = items.use_item(HARVESTED_APPLE, 1, catalog)

    assert not response.is_successful()
    assert items.get_item(HARVESTED_APPLE).payload.quantity == 1


def test_subtypes_follow_fixed_order(catalog):
    items = ItemList()
    items.add_item(catalog.get_template(BENCH_BLUEPRINT), 1)
    items.add_item(catalog.get_template(HARVESTED_APPLE), 1)
    items.add_item(catalog.get_template(CARROT_SEED), 1)

    assert items.get_all_subtypes() == [ItemSubtype.SEED, ItemSubtype.HARVESTED, ItemSubtype.BLUEPRINT]
    assert [item.item_data.id for item in items.get_items_by_subtype(ItemSubtype.SEED)] == [CARROT_SEED]


def test_from_plain_object_drops_error_entries(catalog):
    plain = {"items": [
        {"item_data": {"id": APPLE_SEED, "name": "apple seed"}, "quantity": 2},
        {"item_data": {"id": "nope", "name": "nope"}, "quantity": 1},
        "garbage",
    ]}

    items = ItemList.from_plain_object(plain, catalog)

    assert items.size() == 1
    assert items.get_item(APPLE_SEED).payload.quantity == 2


def _contents(items):
    return [(item.item_data.id, item.quantity) for item in items]


def test_add_then_remove_same_amount_restores_contents(catalog):
    items = ItemList()
    items.add_item(catalog.get_template(APPLE_SEED), 2)
    items.add_item(catalog.get_template(HARVESTED_APPLE), 1)
    before = _contents(items)

    for identifier in (APPLE_SEED, CARROT_SEED):
        items.add_item(catalog.get_template(identifier), 4)
        assert items.update_quantity(identifier, -4).is_successful()
        assert _contents(items) == before


def test_delete_item_returns_detached_zero_copy(catalog):
    items = ItemList()
    live = items.add_item(catalog.get_template(APPLE_SEED), 5).payload

    response = items.delete_item(APPLE_SEED)

    assert response.is_successful()
    assert response.payload.quantity == 0
    assert response.payload is not live
    assert response.payload.item_data.id == APPLE_SEED
    assert live.quantity == 5
    assert not items.contains(APPLE_SEED).payload
    assert not items.delete_item(APPLE_SEED).is_successful()


def test_template_lookup_ignores_display_names(catalog):
    seed = catalog.get_template(APPLE_SEED)
    # An entry whose display name collides with another template's id.
    look_alike = replace(seed, id="9999999", name=CARROT_SEED)
    items = ItemList([InventoryItem(look_alike, 1)])

    assert not items.get_item(catalog.get_template(CARROT_SEED)).is_successful()
    assert not items.contains(InventoryItem(catalog.get_template(CARROT_SEED), 1)).payload
    assert items.get_item(CARROT_SEED).payload.item_data.id == "9999999"
