"""
SQLAlchemy ORM models for database tables.

This package defines the local store schema using SQLAlchemy ORM models:

Models:
    base: Declarative base, shared enums (SyncStatus, SyncMode) and the
          RemoteEntityMixin / DetailFetchMixin column sets
    contact: Contacts
    inventory: Elements, inventory models, inventory groups, serial units
    reference: Pricing models, units of measure, business locations,
               standard discounts
    sync_run: Sync audit ledger

Database Schema:
    Every replicated table carries a unique, non-null remote_id (the natural
    key for reconciliation), a raw_payload JSON column with the last-seen
    remote record, and created_at / updated_at timestamps. Two-phase tables
    add detail_fetched / detail_fetched_at, the resumption checkpoint.

Usage:
    from models import Contact, SerialUnit, SyncRun
    from models.base import SyncStatus, SyncMode

Example:
    contact = Contact(remote_id="c-1", raw_payload={"id": "c-1"})
    session.add(contact)
    await session.commit()
"""

from models.base import Base, SyncStatus, SyncMode, RemoteEntityMixin, DetailFetchMixin
from models.contact import Contact
from models.inventory import Element, InventoryModel, InventoryGroup, SerialUnit
from models.reference import PricingModel, UnitOfMeasure, BusinessLocation, StandardDiscount
from models.sync_run import SyncRun

__all__ = [
    "Base",
    "SyncStatus",
    "SyncMode",
    "RemoteEntityMixin",
    "DetailFetchMixin",
    "Contact",
    "Element",
    "InventoryModel",
    "InventoryGroup",
    "SerialUnit",
    "PricingModel",
    "UnitOfMeasure",
    "BusinessLocation",
    "StandardDiscount",
    "SyncRun",
]
