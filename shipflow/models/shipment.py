"""Shipment models - classification vocabularies and the persisted shipment record."""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List

from sqlalchemy import String, Boolean, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column

from shipflow.database import Base


class ShipmentType(str, Enum):
    """Logical shipment type."""
    FORWARD = "FORWARD"    # Toward service center / distributor / customer
    REVERSE = "REVERSE"    # Back toward the brand


class ShipmentDirection(str, Enum):
    """Party that originates the movement."""
    BRAND = "BRAND"
    SERVICE_CENTER = "SERVICE_CENTER"
    DISTRIBUTOR = "DISTRIBUTOR"


class ReturnReason(str, Enum):
    """Reason attached to reverse shipments."""
    DEFECTIVE = "DEFECTIVE"
    EXCESS = "EXCESS"
    WARRANTY_RETURN = "WARRANTY_RETURN"
    WRONG_PART = "WRONG_PART"


class PayerRole(str, Enum):
    """Party financially responsible for the courier cost."""
    BRAND = "BRAND"
    SERVICE_CENTER = "SERVICE_CENTER"
    DISTRIBUTOR = "DISTRIBUTOR"
    CUSTOMER = "CUSTOMER"


class ShipmentPriority(str, Enum):
    """Requested handling priority. HIGH and CRITICAL ship express."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class ShipmentRecord(Base):
    """
    Persisted shipment header.

    The economics core only patches carrier metadata onto it (AWB, tracking
    URL, label URLs); everything else is owned by the shipment screens.
    """
    __tablename__ = "shipment_records"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )

    awb_number: Mapped[Optional[str]] = mapped_column(
        String(50),
        index=True,
        comment="Carrier tracking number"
    )
    tracking_url: Mapped[Optional[str]] = mapped_column(String(500))
    label_urls: Mapped[Optional[List[str]]] = mapped_column(JSON, default=list)
    courier_metadata: Mapped[Optional[dict]] = mapped_column(
        JSON,
        default=dict,
        comment="Reference number, retry count, label format, etc."
    )
    fallback_mode: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        comment="True when the AWB is a synthetic placeholder"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc)
    )

    def __repr__(self) -> str:
        return f"<ShipmentRecord(id='{self.id}', awb='{self.awb_number}')>"
