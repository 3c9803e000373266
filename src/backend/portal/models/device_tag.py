"""Custom device tag catalogue and per-device tag values."""

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import String, Boolean, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from portal.models.base import Base

if TYPE_CHECKING:
    from portal.models.device import Device


class DeviceTag(Base):
    """Tenant-defined tag name visible on every device."""

    __tablename__ = "device_tags"

    name: Mapped[str] = mapped_column(String(100), primary_key=True)
    label: Mapped[str] = mapped_column(String(200), nullable=False)
    required: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    searchable: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<DeviceTag(name={self.name}, searchable={self.searchable})>"


class DeviceTagValue(Base):
    """Value of a custom tag on one device."""

    __tablename__ = "device_tag_values"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    device_id: Mapped[str] = mapped_column(
        String(128),
        ForeignKey("devices.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    value: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    device: Mapped["Device"] = relationship("Device", back_populates="tags")

    def __repr__(self) -> str:
        return f"<DeviceTagValue(device_id={self.device_id}, {self.name}={self.value})>"
