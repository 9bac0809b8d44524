from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..models import (
    ItemType,
    ItemSubtype,
    ItemTemplate,
    TransactionResponse,
    ERROR_INVENTORY_TEMPLATE,
    ERROR_PLACED_TEMPLATE,
)

GROUND_NAME = "ground"


class ItemCatalog:
    """
    Read-only dictionary of every ItemTemplate, built once at load time.
    Lookups never mutate; the exposed mappings are read-only proxies.
    """

    def __init__(self, templates: Iterable[ItemTemplate]):
        by_id: Dict[str, ItemTemplate] = {}
        by_name: Dict[Tuple[str, str], ItemTemplate] = {}
        by_subtype: Dict[str, List[ItemTemplate]] = {}

        for template in templates:
            by_id[template.id] = template
            by_name[(template.type, template.name)] = template
            by_subtype.setdefault(template.subtype, []).append(template)

        self.templates = MappingProxyType(by_id)
        self._by_name = MappingProxyType(by_name)
        self._by_subtype = MappingProxyType(
            {subtype: tuple(sorted(group, key=lambda t: t.name)) for subtype, group in by_subtype.items()}
        )

        grounds = self._by_subtype.get(ItemSubtype.GROUND, ())
        if not grounds:
            raise ValueError("Item catalog has no Ground template; empty plots cannot be represented.")
        self._ground = next((t for t in grounds if t.name == GROUND_NAME), grounds[0])

    def __len__(self) -> int:
        return len(self.templates)

    def __contains__(self, template_id: str) -> bool:
        return template_id in self.templates

    def get_all_templates(self) -> List[ItemTemplate]:
        return list(self.templates.values())

    def get_template(self, template_id: str) -> Optional[ItemTemplate]:
        return self.templates.get(template_id)

    def get_template_by_name(self, name: str, item_type: Optional[str] = None) -> Optional[ItemTemplate]:
        if item_type is not None:
            return self._by_name.get((item_type, name))
        return self._by_name.get((ItemType.INVENTORY, name)) or self._by_name.get((ItemType.PLACED, name))

    def _get_typed_template(self, ref: str, item_type: str) -> Optional[ItemTemplate]:
        template = self.templates.get(ref)
        if template is None:
            template = self._by_name.get((item_type, ref))
        if template is None or template.type != item_type:
            return None
        return template

    def get_inventory_template(self, ref: str) -> Optional[ItemTemplate]:
        """Looks up by id, then by name. Placed templates are refused."""
        return self._get_typed_template(ref, ItemType.INVENTORY)

    def get_placed_template(self, ref: str) -> Optional[ItemTemplate]:
        """Looks up by id, then by name. Inventory templates are refused."""
        return self._get_typed_template(ref, ItemType.PLACED)

    def get_ground_template(self) -> ItemTemplate:
        return self._ground

    def get_templates_by_subtype(self, subtype: str) -> List[ItemTemplate]:
        return list(self._by_subtype.get(subtype, ()))

    def get_error_template(self, item_type: str) -> ItemTemplate:
        return ERROR_PLACED_TEMPLATE if item_type == ItemType.PLACED else ERROR_INVENTORY_TEMPLATE

    def transform(self, template: ItemTemplate) -> TransactionResponse:
        """
        The template this one becomes when used: Seed -> Plant, Plant -> HarvestedItem,
        Blueprint -> Decoration, Decoration -> Blueprint. HarvestedItem and Ground have none.
        """

        expected_subtype = ItemSubtype.TRANSFORMS.get(template.subtype)
        if expected_subtype is None:
            return TransactionResponse.fail(f"item is of type {template.subtype}, cannot be used")

        target = self.templates.get(template.transform_id)
        if target is None:
            return TransactionResponse.fail(f"{template.name} transforms into unknown item {template.transform_id}")

        if target.subtype != expected_subtype:
            return TransactionResponse.fail(
                f"{template.name} transforms into {target.subtype}, expected {expected_subtype}")

        return TransactionResponse.ok(target)

    def resolve_template(self, plain_object: Any, item_type: str) -> ItemTemplate:
        """
        Resolves a serialized template reference ({"id", "name", ...}) against the catalog.
        Matches by id first, then by name. Anything unresolvable becomes the error template.
        """

        if not isinstance(plain_object, dict):
            return self.get_error_template(item_type)

        template_id = plain_object.get("id")
        if isinstance(template_id, str):
            template = self.templates.get(template_id)
            if template is not None and template.type == item_type:
                return template

        name = plain_object.get("name")
        if isinstance(name, str):
            template = self._by_name.get((item_type, name))
            if template is not None:
                return template

        return self.get_error_template(item_type)
