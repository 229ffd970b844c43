"""Enumeration types used throughout the invoice API.

Enumerations constrain the values stored in the database and passed
through the API.  When modifying these enums update any corresponding
database columns or Pydantic validators so that new values are
accepted where appropriate.
"""

from enum import Enum


class RoleName(str, Enum):
    """Account roles; only ``admin`` grants extra permissions."""

    NORMAL_USER = "normal_user"
    COMPANY_USER = "company_user"
    COMPANY_COLLABORATOR = "company_collaborator"
    ADMIN = "admin"


class SubscriptionStatus(str, Enum):
    """Lifecycle states of a subscription; only ACTIVE grants a plan."""

    ACTIVE = "ACTIVE"
    PENDING = "PENDING"
    CANCELED = "CANCELED"
    EXPIRED = "EXPIRED"


class InvoiceOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"
