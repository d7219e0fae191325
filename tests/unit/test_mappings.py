"""
Unit tests for the declarative mapping table
"""

import pytest

from core.exceptions import MappingError
from replication.mappings import (
    COLLECTIONS,
    CONTACTS,
    ELEMENTS,
    INVENTORY_GROUPS,
    SERIAL_UNITS,
    STANDARD_DISCOUNTS,
    INVENTORY_MODELS,
    as_bool,
    as_float,
    as_int,
    as_json,
    extract_remote_id,
    get_collection,
    map_record,
    resolve_path,
)


class TestTransforms:

    @pytest.mark.parametrize("value,expected", [
        (True, True),
        (0, False),
        (1, True),
        ("true", True),
        ("Yes", True),
        ("0", False),
        ("false", False),
        (None, None),
    ])
    def test_as_bool_normalises_truthy_values(self, value, expected):
        assert as_bool(value) is expected

    def test_as_bool_rejects_unknown_strings(self):
        with pytest.raises(ValueError):
            as_bool("maybe")

    def test_as_int_accepts_float_strings(self):
        assert as_int("10.0") == 10
        assert as_int(" 12 ") == 12
        assert as_int("") is None

    @pytest.mark.parametrize("value", ["1e400", "Infinity", "NaN", float("inf"), "2.5", "1e20", 2 ** 40])
    def test_as_int_rejects_non_integral_and_out_of_range(self, value):
        with pytest.raises(ValueError):
            as_int(value)

    def test_as_float_rejects_non_finite(self):
        assert as_float("2.5") == 2.5
        with pytest.raises(ValueError):
            as_float("1e400")

    def test_as_json_rejects_unserializable(self):
        with pytest.raises(TypeError):
            as_json({"when": object()})


class TestMapRecord:

    def test_dotted_paths_flatten_nested_objects(self):
        record = {
            "id": "c1",
            "name": "Acme",
            "pricingModel": {"id": "pm1", "name": "Standard"},
            "deleted": "false",
        }

        values = map_record(CONTACTS, record)

        assert values["pricing_model_id"] == "pm1"
        assert values["pricing_model_name"] == "Standard"
        assert values["standard_discount_id"] is None
        assert values["deleted"] is False
        assert values["email"] is None

    def test_pick_flattens_reference_objects(self):
        record = {
            "id": "g1",
            "name": "Audio",
            "parentGroup": {"id": "g0", "name": "Root"},
            "viewGroupIds": ["v1", "v2"],
        }

        values = map_record(INVENTORY_GROUPS, record)

        assert values["parent_group_id"] == "g0"
        assert values["parent_group_name"] == "Root"
        assert values["view_group_ids"] == ["v1", "v2"]

    def test_nested_value_for_scalar_column_is_mapping_error(self):
        record = {"id": "e1", "name": {"unexpected": "object"}}

        with pytest.raises(MappingError) as exc_info:
            map_record(ELEMENTS, record)

        assert exc_info.value.context["remote_field"] == "name"
        assert exc_info.value.context["remote_id"] == "e1"

    @pytest.mark.parametrize("period", ["1e400", 10 ** 20])
    def test_oversized_number_is_mapping_error(self, period):
        record = {"id": "m1", "name": "Cable", "depreciationPeriod": period}

        with pytest.raises(MappingError) as exc_info:
            map_record(INVENTORY_MODELS, record)

        assert exc_info.value.context["remote_field"] == "depreciationPeriod"

    def test_list_mappings_limit_phase_one_columns(self):
        columns = {m.column for m in CONTACTS.list_mappings()}
        assert columns == {"name", "contact_type", "status", "deleted"}

    def test_flat_collection_maps_every_field_in_list_phase(self):
        assert ELEMENTS.list_mappings() == ELEMENTS.fields
        assert not ELEMENTS.two_phase

    def test_resolve_path_tolerates_missing_links(self):
        assert resolve_path({"a": None}, "a.b.c") is None
        assert resolve_path({"a": "scalar"}, "a.b") is None


class TestRemoteId:

    def test_numeric_ids_become_strings(self):
        assert extract_remote_id(ELEMENTS, {"id": 42}) == "42"

    @pytest.mark.parametrize("record", [{}, {"id": None}, {"id": ""}, ["not", "a", "record"]])
    def test_records_without_identifier_are_rejected(self, record):
        with pytest.raises(MappingError):
            extract_remote_id(ELEMENTS, record)


class TestCollections:

    def test_parents_are_synced_before_children(self):
        names = list(COLLECTIONS)
        assert names.index("inventory_models") < names.index("serial_units")

    def test_serial_units_are_parent_scoped(self):
        assert SERIAL_UNITS.parent is not None
        assert SERIAL_UNITS.parent.param == "modelId"
        assert not SERIAL_UNITS.paginated
        assert SERIAL_UNITS.two_phase

    def test_unknown_collection_lists_known_names(self):
        with pytest.raises(KeyError) as exc_info:
            get_collection("invoices")
        assert "contacts" in str(exc_info.value)

    def test_every_mapped_column_exists_on_its_model(self):
        for spec in COLLECTIONS.values():
            columns = set(spec.model.__table__.columns.keys())
            for mapping in spec.fields:
                assert mapping.column in columns, f"{spec.name}.{mapping.column}"
            for column in spec.list_columns or []:
                assert column in {m.column for m in spec.fields}

    def test_standard_discounts_are_enumerated_from_contacts(self):
        names = list(COLLECTIONS)
        assert names.index("contacts") < names.index("standard_discounts")
        assert STANDARD_DISCOUNTS.referenced_by.column == "standard_discount_id"
        assert not STANDARD_DISCOUNTS.two_phase
        assert not STANDARD_DISCOUNTS.paginated

    def test_discount_record_uses_its_own_identifier(self):
        record = {"discountId": 7, "discountName": "Trade", "rules": None}

        assert extract_remote_id(STANDARD_DISCOUNTS, record) == "7"
        assert map_record(STANDARD_DISCOUNTS, record) == {"name": "Trade", "rules": []}

    def test_contact_detail_carries_discount_reference(self):
        values = map_record(CONTACTS, {"id": "c1", "standardDiscount": {"id": 12, "name": "Trade"}})
        assert values["standard_discount_id"] == "12"
