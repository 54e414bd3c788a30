"""Party model - brands, service centers, distributors and customers."""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import String, Boolean, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from shipflow.database import Base


class PartyRole(str, Enum):
    """Role a party plays in the spare-parts network."""
    BRAND = "BRAND"
    SERVICE_CENTER = "SERVICE_CENTER"
    DISTRIBUTOR = "DISTRIBUTOR"
    CUSTOMER = "CUSTOMER"


class Party(Base):
    """
    A shipping party.

    Only the fields the shipment economics core reads are mapped here; the
    rest of the user profile lives with the account service.
    """
    __tablename__ = "parties"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    role: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        index=True,
        comment="BRAND, SERVICE_CENTER, DISTRIBUTOR, CUSTOMER"
    )

    # Contact / address used for carrier payloads
    phone: Mapped[Optional[str]] = mapped_column(String(20))
    street: Mapped[Optional[str]] = mapped_column(String(255))
    area: Mapped[Optional[str]] = mapped_column(String(255))
    city: Mapped[Optional[str]] = mapped_column(String(100))
    state: Mapped[Optional[str]] = mapped_column(String(100))
    pincode: Mapped[Optional[str]] = mapped_column(String(10), index=True)
    country: Mapped[str] = mapped_column(String(50), default="India")

    is_remote_area: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        comment="Out-of-delivery-area pincode, attracts location surcharge"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )

    def __repr__(self) -> str:
        return f"<Party(id='{self.id}', role='{self.role}')>"
