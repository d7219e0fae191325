from sqlalchemy import Column, String, Boolean, Index
from models.base import Base, RemoteEntityMixin, DetailFetchMixin


class Contact(RemoteEntityMixin, DetailFetchMixin, Base):
    """
    People and organisations known to Flex.

    The list endpoint returns a thin projection; names, pricing model and
    billing contact arrive with the per-contact detail payload.
    """
    __tablename__ = "contacts"

    name = Column(String(255), nullable=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    contact_type = Column(String(50), nullable=True, index=True)
    status = Column(String(50), nullable=True, index=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)

    default_bill_to_contact_id = Column(String(64), nullable=True)
    pricing_model_id = Column(String(64), nullable=True)
    pricing_model_name = Column(String(255), nullable=True)
    standard_discount_id = Column(String(64), nullable=True, index=True)

    deleted = Column(Boolean, nullable=True)

    __table_args__ = (
        Index("idx_contacts_type_status", "contact_type", "status"),
    )
