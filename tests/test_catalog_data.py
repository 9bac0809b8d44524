import json

import pytest

from zengarden.helpers import DataHelper, ItemCatalog
from zengarden.models import ItemSubtype, ItemTemplate, ItemType

from conftest import APPLE, APPLE_SEED, BENCH, BENCH_BLUEPRINT, HARVESTED_APPLE


def test_bundled_catalog_transforms_are_consistent(catalog):
    for template in catalog.get_all_templates():
        expected = ItemSubtype.TRANSFORMS.get(template.subtype)
        response = catalog.transform(template)
        if expected is None:
            assert not response.is_successful()
        else:
            assert response.is_successful(), template.name
            assert response.payload.subtype == expected


def test_blueprint_and_decoration_round_trip(catalog):
    decoration = catalog.transform(catalog.get_template(BENCH_BLUEPRINT)).payload
    assert decoration.id == BENCH
    assert catalog.transform(decoration).payload.id == BENCH_BLUEPRINT


def test_typed_lookups_refuse_wrong_type(catalog):
    assert catalog.get_inventory_template(APPLE_SEED).id == APPLE_SEED
    assert catalog.get_inventory_template(APPLE) is None
    assert catalog.get_placed_template(APPLE).id == APPLE
    assert catalog.get_placed_template("apple seed") is None
    assert catalog.get_inventory_template("harvested apple").id == HARVESTED_APPLE


def test_ground_template(catalog):
    ground = catalog.get_ground_template()
    assert ground.subtype == ItemSubtype.GROUND
    assert ground.type == ItemType.PLACED


def test_resolve_template_falls_back_to_error(catalog):
    assert catalog.resolve_template({"id": APPLE_SEED}, ItemType.INVENTORY).id == APPLE_SEED
    assert catalog.resolve_template({"id": "x", "name": "apple seed"}, ItemType.INVENTORY).id == APPLE_SEED
    assert catalog.resolve_template({"id": APPLE_SEED}, ItemType.PLACED).is_error
    assert catalog.resolve_template(None, ItemType.INVENTORY).is_error


def test_catalog_requires_ground():
    seed = ItemTemplate("1", "seed", "", ItemType.INVENTORY, ItemSubtype.SEED, 1, "2")
    with pytest.raises(ValueError):
        ItemCatalog([seed])


def test_store_definitions_loaded(store_definitions):
    general = store_definitions[0]
    assert general.store_name == "General Store"
    assert dict(general.stock)[APPLE_SEED] == 10


def test_missing_data_directory_uses_defaults(tmp_path):
    loader = DataHelper(tmp_path)
    loader.load_all_data()

    assert loader.catalog.get_ground_template().name == "ground"
    assert loader.catalog.get_inventory_template(APPLE_SEED) is not None
    assert 0 in loader.store_definitions


def test_invalid_entries_are_skipped(tmp_path):
    items_dir = tmp_path / "items"
    items_dir.mkdir()
    (items_dir / "items.json").write_text(json.dumps([
        {"id": "0000000", "name": "ground", "subtype": "Ground", "transform_id": "0000000"},
        {"id": "1000001", "name": "mystery", "subtype": "Nonsense"},
        {"id": "1000002", "name": "bad value", "subtype": "Seed", "value": "lots"},
        "not an object",
    ]), encoding="utf-8")
    (items_dir / "broken.json").write_text("{not json", encoding="utf-8")
    (tmp_path / "stores.json").write_text(json.dumps([{"store_name": "no id"}]), encoding="utf-8")

    loader = DataHelper(tmp_path)
    loader.load_all_data()

    assert len(loader.catalog) == 1
    assert loader.store_definitions == {}
