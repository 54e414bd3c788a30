"""Pricing configuration models - brand overrides and global system config."""
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import String, Boolean, DateTime, Float, Text
from sqlalchemy.orm import Mapped, mapped_column

from shipflow.database import Base


class BrandPricingOverride(Base):
    """
    Brand-specific courier pricing.

    Only per_box_rate is mandatory; every other column left NULL falls back
    to the fixed override defaults when pricing is resolved.
    """
    __tablename__ = "brand_pricing_overrides"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    brand_id: Mapped[str] = mapped_column(
        String(36),
        unique=True,
        nullable=False,
        index=True
    )

    per_box_rate: Mapped[float] = mapped_column(Float, nullable=False)
    weight_rate_per_kg: Mapped[Optional[float]] = mapped_column(Float)
    min_charge: Mapped[Optional[float]] = mapped_column(Float)
    markup_percent: Mapped[Optional[float]] = mapped_column(Float)
    location_surcharge: Mapped[Optional[float]] = mapped_column(Float)
    express_multiplier: Mapped[Optional[float]] = mapped_column(Float)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc)
    )


class SystemConfig(Base):
    """Key/value system configuration. Values are JSON documents stored as text."""
    __tablename__ = "system_configs"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    value: Mapped[Optional[str]] = mapped_column(Text)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc)
    )
