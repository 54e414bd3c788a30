"""Spare part catalog entries (weight only)."""
from typing import Optional

from sqlalchemy import String, Float
from sqlalchemy.orm import Mapped, mapped_column

from shipflow.database import Base


class PartCatalogItem(Base):
    """Part with its packed unit weight."""
    __tablename__ = "part_catalog"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    weight_kg: Mapped[Optional[float]] = mapped_column(Float, comment="Packed unit weight in kg")
