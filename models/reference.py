from sqlalchemy import Column, String, Float, Integer, Boolean
from models.base import Base, JSONType, RemoteEntityMixin, DetailFetchMixin


class PricingModel(RemoteEntityMixin, DetailFetchMixin, Base):
    """Price and cost calculation rules"""
    __tablename__ = "pricing_models"

    name = Column(String(255), nullable=True)
    code = Column(String(100), nullable=True)
    deleted = Column(Boolean, nullable=True)

    unit_of_measure_id = Column(String(64), nullable=True)
    unit_of_measure_name = Column(String(255), nullable=True)
    start_date = Column(String(50), nullable=True)
    end_date = Column(String(50), nullable=True)

    price_calculation_method = Column(String(100), nullable=True)
    price_multiplier = Column(Float, nullable=True)
    price_base_pricing_model_id = Column(String(64), nullable=True)
    cost_calculation_method = Column(String(100), nullable=True)
    cost_multiplier = Column(Float, nullable=True)
    price_override_enabled = Column(Boolean, nullable=True)


class UnitOfMeasure(RemoteEntityMixin, DetailFetchMixin, Base):
    """Time, count, weight and length units"""
    __tablename__ = "units_of_measure"

    name = Column(String(255), nullable=True)
    name_plural = Column(String(255), nullable=True)
    abbreviation = Column(String(50), nullable=True)
    unit_of_time = Column(String(50), nullable=True)
    count_unit = Column(Boolean, nullable=True)
    time_unit = Column(Boolean, nullable=True)
    counts_per_unit = Column(Integer, nullable=True)
    deleted = Column(Boolean, nullable=True)
    domain_id = Column(String(64), nullable=True)


class BusinessLocation(RemoteEntityMixin, DetailFetchMixin, Base):
    """Warehouses and offices"""
    __tablename__ = "business_locations"

    name = Column(String(255), nullable=True)
    location_code = Column(String(50), nullable=True)
    onsite = Column(Boolean, nullable=True)
    corporate_entity = Column(String(255), nullable=True)
    currency_name = Column(String(100), nullable=True)
    locale = Column(String(50), nullable=True)
    time_zone = Column(String(100), nullable=True)
    location_type_id = Column(String(64), nullable=True)
    location_type_name = Column(String(255), nullable=True)


class StandardDiscount(RemoteEntityMixin, Base):
    """
    Discount schedules referenced by contacts.

    There is no list endpoint; the ids come from contacts.standard_discount_id.
    """
    __tablename__ = "standard_discounts"

    name = Column(String(255), nullable=True)
    rules = Column(JSONType, nullable=True)
