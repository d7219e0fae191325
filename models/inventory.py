from sqlalchemy import Column, String, Text, Float, Integer, Boolean
from models.base import Base, JSONType, RemoteEntityMixin, DetailFetchMixin


class Element(RemoteEntityMixin, Base):
    """Documents and projects (flat: the search endpoint returns full records)"""
    __tablename__ = "elements"

    name = Column(String(500), nullable=True)
    document_number = Column(String(100), nullable=True, index=True)
    definition_name = Column(String(255), nullable=True, index=True)
    parent_name = Column(String(500), nullable=True)
    deleted = Column(Boolean, nullable=True)


class InventoryModel(RemoteEntityMixin, DetailFetchMixin, Base):
    """Rentable equipment models"""
    __tablename__ = "inventory_models"

    name = Column(String(500), nullable=True)
    code = Column(String(100), nullable=True, index=True)
    short_name = Column(String(255), nullable=True)
    barcode = Column(String(100), nullable=True, index=True)
    manufacturer = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)

    deleted = Column(Boolean, nullable=True)
    tracked_by_serial_unit = Column(Boolean, nullable=True)
    container = Column(Boolean, nullable=True)
    discountable = Column(Boolean, nullable=True)

    replacement_cost = Column(Float, nullable=True)
    purchase_cost = Column(Float, nullable=True)
    weight = Column(Float, nullable=True)
    depreciation_period = Column(Integer, nullable=True)

    group_id = Column(String(64), nullable=True, index=True)
    group_name = Column(String(255), nullable=True)
    icon_id = Column(String(64), nullable=True)
    icon_name = Column(String(255), nullable=True)
    weight_unit_id = Column(String(64), nullable=True)

    flex_created_date = Column(String(50), nullable=True)
    flex_last_edit_date = Column(String(50), nullable=True)


class InventoryGroup(RemoteEntityMixin, DetailFetchMixin, Base):
    """Hierarchical grouping of inventory models"""
    __tablename__ = "inventory_groups"

    name = Column(String(255), nullable=True)
    full_display_string = Column(String(1000), nullable=True)
    domain_id = Column(String(64), nullable=True)

    parent_group_id = Column(String(64), nullable=True, index=True)
    parent_group_name = Column(String(255), nullable=True)
    icon_id = Column(String(64), nullable=True)
    icon_name = Column(String(255), nullable=True)
    management_group = Column(Boolean, nullable=True)

    sales_account_id = Column(String(64), nullable=True)
    purchase_account_id = Column(String(64), nullable=True)
    view_group_ids = Column(JSONType, nullable=True)


class SerialUnit(RemoteEntityMixin, DetailFetchMixin, Base):
    """
    Individually tracked units of an inventory model.

    Enumerated per inventory model (node-list endpoint); the parent model id
    and name are injected into each list record before reconciliation.
    """
    __tablename__ = "serial_units"

    name = Column(String(500), nullable=True)
    barcode = Column(String(100), nullable=True, index=True)
    serial = Column(String(100), nullable=True, index=True)
    stencil = Column(String(100), nullable=True, index=True)

    inventory_model_id = Column(String(64), nullable=True, index=True)
    inventory_model_name = Column(String(500), nullable=True)

    current_location = Column(String(255), nullable=True, index=True)
    current_location_id = Column(String(64), nullable=True)
    homebase_location_id = Column(String(64), nullable=True)
    homebase_location_name = Column(String(255), nullable=True)

    is_deleted = Column(Boolean, nullable=True, index=True)
    out_of_commission = Column(Boolean, nullable=True)
    presumed_missing = Column(Boolean, nullable=True)

    replacement_cost = Column(Float, nullable=True)
    purchase_cost = Column(Float, nullable=True)
    rfid_tag = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)

    return_date = Column(String(50), nullable=True)
    flex_created_date = Column(String(50), nullable=True)
    last_edit_date = Column(String(50), nullable=True)
