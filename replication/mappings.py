"""
Declarative field mapping for every replicated collection.

Each collection is described once by a CollectionSpec: where to list it,
where to fetch one record, which ORM model stores it and how remote fields
map onto local columns. A single generic reconciler consumes these specs.

Remote field names may be dotted paths (``referenceData.group.id``) to
flatten nested objects onto scalar columns. Anything not mapped stays
available in the raw_payload column.
"""

import json
import math
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Type
from core.exceptions import MappingError
from models import (
    Contact,
    Element,
    InventoryModel,
    InventoryGroup,
    SerialUnit,
    PricingModel,
    UnitOfMeasure,
    BusinessLocation,
    StandardDiscount,
)

Transform = Callable[[Any], Any]

_TRUE_STRINGS = {"true", "t", "yes", "y", "1"}
_FALSE_STRINGS = {"false", "f", "no", "n", "0", ""}


# ============================================================================
# Transforms
# ============================================================================

def as_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        raise ValueError("expected a scalar, got a nested structure")
    return str(value)


INT_MIN, INT_MAX = -2 ** 31, 2 ** 31 - 1


def as_int(value: Any) -> Optional[int]:
    """Whole numbers only, within a signed 32-bit column"""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        number = value
    elif isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"not a whole number: {value!r}")
        number = int(value)
    elif isinstance(value, str):
        text = value.strip()
        try:
            number = int(text)
        except ValueError:
            as_number = float(text)  # "10.0" strings
            if not as_number.is_integer():
                raise ValueError(f"not a whole number: {value!r}")
            number = int(as_number)
    else:
        raise TypeError(f"cannot read {type(value).__name__} as int")

    if not INT_MIN <= number <= INT_MAX:
        raise ValueError(f"out of range for an integer column: {value!r}")
    return number


def as_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"not a finite number: {value!r}")
    return number


def as_bool(value: Any) -> Optional[bool]:
    """Normalise booleans, 0/1 and truthy strings to the store's boolean"""
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise ValueError(f"cannot interpret {value!r} as a boolean")


def as_json(value: Any) -> Any:
    """Keep a nested structure as a JSON blob (must be serializable)"""
    if value is None:
        return None
    json.dumps(value)
    return value


def as_json_list(value: Any) -> Any:
    """JSON array blob; a missing array is stored empty"""
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError("expected an array")
    return as_json(value)


def pick(sub_field: str, transform: Transform = as_str) -> Transform:
    """Flatten a nested object onto a scalar by picking one sub-field"""

    def _pick(value: Any) -> Any:
        if value is None:
            return None
        if not isinstance(value, dict):
            raise ValueError(f"expected an object to pick '{sub_field}' from")
        return transform(value.get(sub_field))

    _pick.__name__ = f"pick_{sub_field}"
    return _pick


# ============================================================================
# Mapping table types
# ============================================================================

class FieldMapping(NamedTuple):
    """remoteFieldName -> (localColumn, transform)"""
    remote: str
    column: str
    transform: Transform = as_str


class ParentScope(NamedTuple):
    """
    Enumerate a child collection once per locally stored parent row.

    For every parent remote_id, ``GET list_path?{param}={parent_id}`` is
    called and ``inject`` copies parent columns into each child record
    (``{child_field: parent_column}``) before reconciliation.
    """
    model: Type
    param: str
    inject: Dict[str, str]


class ReferenceScope(NamedTuple):
    """
    Enumerate a collection that has no list endpoint.

    The ids are the distinct non-null values of ``column`` on ``model``;
    each is fetched with ``GET list_path/{id}``.
    """
    model: Type
    column: str


class CollectionSpec(NamedTuple):
    name: str
    model: Type
    list_path: str
    fields: List[FieldMapping]
    detail_path: Optional[str] = None
    # Columns Phase 1 may overwrite on two-phase collections; None means all fields
    list_columns: Optional[List[str]] = None
    id_field: str = "id"
    list_params: Dict[str, Any] = {}
    paginated: bool = True
    parent: Optional[ParentScope] = None
    referenced_by: Optional[ReferenceScope] = None

    @property
    def two_phase(self) -> bool:
        return self.detail_path is not None

    def list_mappings(self) -> List[FieldMapping]:
        if self.list_columns is None:
            return list(self.fields)
        allowed = set(self.list_columns)
        return [m for m in self.fields if m.column in allowed]


def resolve_path(record: Dict[str, Any], path: str) -> Any:
    """Read a dotted path; missing links yield None"""
    value: Any = record
    for part in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
        if value is None:
            return None
    return value


def extract_remote_id(spec: CollectionSpec, record: Any) -> str:
    if not isinstance(record, dict):
        raise MappingError(
            "Remote record is not an object",
            context={"collection": spec.name, "type": type(record).__name__}
        )
    remote_id = record.get(spec.id_field)
    if remote_id is None or remote_id == "":
        raise MappingError(
            "Remote record has no identifier",
            context={"collection": spec.name, "id_field": spec.id_field}
        )
    return str(remote_id)


def map_record(
    spec: CollectionSpec,
    record: Dict[str, Any],
    mappings: Optional[List[FieldMapping]] = None
) -> Dict[str, Any]:
    """
    Project a remote record onto local column values.

    Raises:
        MappingError: A transform rejected its input
    """
    values: Dict[str, Any] = {}
    for mapping in (spec.fields if mappings is None else mappings):
        raw = resolve_path(record, mapping.remote)
        try:
            values[mapping.column] = mapping.transform(raw)
        except (TypeError, ValueError, OverflowError) as e:
            raise MappingError(
                f"Cannot map '{mapping.remote}' onto '{mapping.column}'",
                context={
                    "collection": spec.name,
                    "remote_id": record.get(spec.id_field),
                    "remote_field": mapping.remote,
                    "value": repr(raw)[:100]
                },
                original_exception=e
            )
    return values


# ============================================================================
# Collections
# ============================================================================

CONTACTS = CollectionSpec(
    name="contacts",
    model=Contact,
    list_path="/contact",
    detail_path="/contact",
    fields=[
        FieldMapping("name", "name"),
        FieldMapping("firstName", "first_name"),
        FieldMapping("lastName", "last_name"),
        FieldMapping("contactType", "contact_type"),
        FieldMapping("status", "status"),
        FieldMapping("email", "email"),
        FieldMapping("phone", "phone"),
        FieldMapping("defaultBillToContactId", "default_bill_to_contact_id"),
        FieldMapping("pricingModel.id", "pricing_model_id"),
        FieldMapping("pricingModel.name", "pricing_model_name"),
        FieldMapping("standardDiscount", "standard_discount_id", pick("id")),
        FieldMapping("deleted", "deleted", as_bool),
    ],
    list_columns=["name", "contact_type", "status", "deleted"],
)

ELEMENTS = CollectionSpec(
    name="elements",
    model=Element,
    list_path="/element/search",
    fields=[
        FieldMapping("name", "name"),
        FieldMapping("documentNumber", "document_number"),
        FieldMapping("definitionName", "definition_name"),
        FieldMapping("parentName", "parent_name"),
        FieldMapping("deleted", "deleted", as_bool),
    ],
)

INVENTORY_MODELS = CollectionSpec(
    name="inventory_models",
    model=InventoryModel,
    list_path="/inventory-model/search",
    detail_path="/inventory-model",
    list_params={"searchText": "e "},  # the search endpoint requires a term
    fields=[
        FieldMapping("name", "name"),
        FieldMapping("code", "code"),
        FieldMapping("shortName", "short_name"),
        FieldMapping("barcode", "barcode"),
        FieldMapping("manufacturer", "manufacturer"),
        FieldMapping("notes", "notes"),
        FieldMapping("deleted", "deleted", as_bool),
        FieldMapping("trackedBySerialUnit", "tracked_by_serial_unit", as_bool),
        FieldMapping("container", "container", as_bool),
        FieldMapping("discountable", "discountable", as_bool),
        FieldMapping("replacementCost", "replacement_cost", as_float),
        FieldMapping("purchaseCost", "purchase_cost", as_float),
        FieldMapping("weight", "weight", as_float),
        FieldMapping("depreciationPeriod", "depreciation_period", as_int),
        FieldMapping("referenceData.group", "group_id", pick("id")),
        FieldMapping("referenceData.group.name", "group_name"),
        FieldMapping("referenceData.icon.id", "icon_id"),
        FieldMapping("referenceData.icon.name", "icon_name"),
        FieldMapping("referenceData.weightUnit.id", "weight_unit_id"),
        FieldMapping("createdDate", "flex_created_date"),
        FieldMapping("lastEditDate", "flex_last_edit_date"),
    ],
    list_columns=["name", "code", "barcode"],
)

INVENTORY_GROUPS = CollectionSpec(
    name="inventory_groups",
    model=InventoryGroup,
    list_path="/inventory-group/search",
    detail_path="/inventory-group",
    fields=[
        FieldMapping("name", "name"),
        FieldMapping("fullDisplayString", "full_display_string"),
        FieldMapping("domainId", "domain_id"),
        FieldMapping("parentGroup", "parent_group_id", pick("id")),
        FieldMapping("parentGroup.name", "parent_group_name"),
        FieldMapping("icon", "icon_id", pick("id")),
        FieldMapping("icon.name", "icon_name"),
        FieldMapping("managementGroup", "management_group", as_bool),
        FieldMapping("salesAccount", "sales_account_id", pick("id")),
        FieldMapping("purchaseAccount", "purchase_account_id", pick("id")),
        FieldMapping("viewGroupIds", "view_group_ids", as_json),
    ],
    list_columns=["name", "full_display_string"],
)

PRICING_MODELS = CollectionSpec(
    name="pricing_models",
    model=PricingModel,
    list_path="/pricing-model/search",
    detail_path="/pricing-model",
    fields=[
        FieldMapping("name", "name"),
        FieldMapping("code", "code"),
        FieldMapping("deleted", "deleted", as_bool),
        FieldMapping("unitOfMeasureIdentity", "unit_of_measure_id", pick("id")),
        FieldMapping("unitOfMeasureIdentity.name", "unit_of_measure_name"),
        FieldMapping("startDate", "start_date"),
        FieldMapping("endDate", "end_date"),
        FieldMapping("priceCalculationMethod", "price_calculation_method"),
        FieldMapping("priceMultiplier", "price_multiplier", as_float),
        FieldMapping("priceBasePricingModel", "price_base_pricing_model_id", pick("id")),
        FieldMapping("costCalculationMethod", "cost_calculation_method"),
        FieldMapping("costMultiplier", "cost_multiplier", as_float),
        FieldMapping("priceOverrideEnabled", "price_override_enabled", as_bool),
    ],
    list_columns=["name", "code", "deleted"],
)

UNITS_OF_MEASURE = CollectionSpec(
    name="units_of_measure",
    model=UnitOfMeasure,
    list_path="/unit-of-measure/search",
    detail_path="/unit-of-measure",
    fields=[
        FieldMapping("name", "name"),
        FieldMapping("namePlural", "name_plural"),
        FieldMapping("abbreviation", "abbreviation"),
        FieldMapping("unitOfTime", "unit_of_time"),
        FieldMapping("countUnit", "count_unit", as_bool),
        FieldMapping("timeUnit", "time_unit", as_bool),
        FieldMapping("countsPerUnit", "counts_per_unit", as_int),
        FieldMapping("deleted", "deleted", as_bool),
        FieldMapping("domainId", "domain_id"),
    ],
    list_columns=["name", "abbreviation"],
)

BUSINESS_LOCATIONS = CollectionSpec(
    name="business_locations",
    model=BusinessLocation,
    list_path="/business-location/search",
    detail_path="/business-location",
    fields=[
        FieldMapping("name", "name"),
        FieldMapping("locationCode", "location_code"),
        FieldMapping("onsite", "onsite", as_bool),
        FieldMapping("corporateEntity", "corporate_entity"),
        FieldMapping("currencyName", "currency_name"),
        FieldMapping("locale", "locale"),
        FieldMapping("timeZone", "time_zone"),
        FieldMapping("locationType", "location_type_id", pick("id")),
        FieldMapping("locationType.name", "location_type_name"),
    ],
    list_columns=["name", "location_code"],
)

STANDARD_DISCOUNTS = CollectionSpec(
    name="standard_discounts",
    model=StandardDiscount,
    list_path="/standard-discount",
    id_field="discountId",
    paginated=False,
    referenced_by=ReferenceScope(model=Contact, column="standard_discount_id"),
    fields=[
        FieldMapping("discountName", "name"),
        FieldMapping("rules", "rules", as_json_list),
    ],
)

SERIAL_UNITS = CollectionSpec(
    name="serial_units",
    model=SerialUnit,
    list_path="/serial-unit/node-list",
    detail_path="/serial-unit",
    paginated=False,
    parent=ParentScope(
        model=InventoryModel,
        param="modelId",
        inject={"inventoryModelId": "remote_id", "inventoryModelName": "name"},
    ),
    fields=[
        FieldMapping("name", "name"),
        FieldMapping("barcode", "barcode"),
        FieldMapping("serial", "serial"),
        FieldMapping("stencil", "stencil"),
        FieldMapping("inventoryModelId", "inventory_model_id"),
        FieldMapping("inventoryModelName", "inventory_model_name"),
        FieldMapping("currentLocation", "current_location"),
        FieldMapping("currentLocationId", "current_location_id"),
        FieldMapping("homebaseLocation", "homebase_location_id", pick("id")),
        FieldMapping("homebaseLocation.name", "homebase_location_name"),
        FieldMapping("deleted", "is_deleted", as_bool),
        FieldMapping("outOfCommission", "out_of_commission", as_bool),
        FieldMapping("presumedMissing", "presumed_missing", as_bool),
        FieldMapping("replacementCost", "replacement_cost", as_float),
        FieldMapping("purchaseCost", "purchase_cost", as_float),
        FieldMapping("rfidTag", "rfid_tag"),
        FieldMapping("notes", "notes"),
        FieldMapping("returnDate", "return_date"),
        FieldMapping("createdDate", "flex_created_date"),
        FieldMapping("lastEditDate", "last_edit_date"),
    ],
    list_columns=[
        "name", "barcode", "serial", "stencil",
        "inventory_model_id", "inventory_model_name", "current_location",
    ],
)

COLLECTIONS: Dict[str, CollectionSpec] = {
    spec.name: spec
    for spec in (
        CONTACTS,
        ELEMENTS,
        INVENTORY_MODELS,
        INVENTORY_GROUPS,
        PRICING_MODELS,
        UNITS_OF_MEASURE,
        BUSINESS_LOCATIONS,
        STANDARD_DISCOUNTS,
        SERIAL_UNITS,
    )
}


def get_collection(name: str) -> CollectionSpec:
    try:
        return COLLECTIONS[name]
    except KeyError:
        raise KeyError(
            f"Unknown entity type '{name}'. Known: {', '.join(sorted(COLLECTIONS))}"
        ) from None
