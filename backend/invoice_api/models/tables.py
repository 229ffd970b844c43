"""SQLAlchemy ORM models for the invoice API.

These models define the relational database schema used by the
application.  Enumerated fields are stored as strings using
SQLAlchemy's native Enum type.  The structured invoice document is kept
in a JSON column and never normalised into columns.

If you extend or modify these models remember to call the ``init_db``
helper during development to recreate the tables.
"""

from __future__ import annotations

import datetime as dt

from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Boolean,
    Enum,
    ForeignKey,
    Numeric,
    Text,
    JSON,
)
from sqlalchemy.orm import relationship

from invoice_api.core.database import Base
from .enums import SubscriptionStatus


class UserRole(Base):
    """Named role; seeded with the values of :class:`RoleName`."""

    __tablename__ = "user_roles"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)

    users = relationship("User", back_populates="role")


class User(Base):
    """User account representing an individual using the service."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=False)
    name = Column(String, nullable=True)
    role_id = Column(Integer, ForeignKey("user_roles.id"), nullable=False)
    # Running count of owned invoices; only changed together with an
    # invoice insert or delete in the same transaction.
    invoice_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=dt.datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=dt.datetime.utcnow, onupdate=dt.datetime.utcnow, nullable=False)

    role = relationship("UserRole", back_populates="users", lazy="selectin")
    subscriptions = relationship("Subscription", back_populates="user")
    invoices = relationship("Invoice", back_populates="owner")


class Plan(Base):
    """Subscription plan with its invoice allowance."""

    __tablename__ = "plans"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)
    description = Column(Text, nullable=False, default="")
    price = Column(Numeric(12, 2), nullable=False, default=0)
    currency = Column(String, nullable=False, default="AOA")
    invoice_limit = Column(Integer, nullable=False)
    features = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=dt.datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=dt.datetime.utcnow, onupdate=dt.datetime.utcnow, nullable=False)

    subscriptions = relationship("Subscription", back_populates="plan")


class Subscription(Base):
    """A user's subscription to a plan."""

    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    plan_id = Column(Integer, ForeignKey("plans.id"), nullable=False)
    status = Column(Enum(SubscriptionStatus), default=SubscriptionStatus.ACTIVE, nullable=False)
    payment_method = Column(String, nullable=True)
    external_ref = Column(String, nullable=True)
    start_date = Column(DateTime, default=dt.datetime.utcnow, nullable=False)
    end_date = Column(DateTime, nullable=True)
    renews_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=dt.datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=dt.datetime.utcnow, onupdate=dt.datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="subscriptions")
    plan = relationship("Plan", back_populates="subscriptions", lazy="selectin")


class Category(Base):
    """Shared classification created by administrators."""

    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)
    icon = Column(String, nullable=False)
    color_hex = Column(String, nullable=False)
    deleted = Column(Boolean, default=False, nullable=False)
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=dt.datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=dt.datetime.utcnow, onupdate=dt.datetime.utcnow, nullable=False)

    invoices = relationship("Invoice", back_populates="category")


class InvoiceType(Base):
    """Income/expense classification (``Receita`` / ``Despesa``)."""

    __tablename__ = "invoice_types"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)
    deleted = Column(Boolean, default=False, nullable=False)
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=dt.datetime.utcnow, nullable=False)

    invoices = relationship("Invoice", back_populates="type")


class Invoice(Base):
    """An ingested invoice: OCR text plus the structured document."""

    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    raw_text = Column(Text, nullable=False)
    structured_data = Column(JSON, nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)
    type_id = Column(Integer, ForeignKey("invoice_types.id"), nullable=False)
    created_at = Column(DateTime, default=dt.datetime.utcnow, nullable=False, index=True)

    owner = relationship("User", back_populates="invoices")
    category = relationship("Category", back_populates="invoices")
    type = relationship("InvoiceType", back_populates="invoices")
