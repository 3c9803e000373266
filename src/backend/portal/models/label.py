"""Label entity attached to devices or device models."""

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import String, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from portal.models.base import Base

if TYPE_CHECKING:
    from portal.models.device import Device
    from portal.models.device_model import DeviceModel


class Label(Base):
    """Coloured label; owned by exactly one device or one device model."""

    __tablename__ = "labels"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    color: Mapped[str] = mapped_column(String(20), nullable=False)

    device_id: Mapped[str | None] = mapped_column(
        String(128),
        ForeignKey("devices.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    device_model_id: Mapped[str | None] = mapped_column(
        String(128),
        ForeignKey("device_models.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    device: Mapped["Device | None"] = relationship("Device", back_populates="labels")
    device_model: Mapped["DeviceModel | None"] = relationship("DeviceModel", back_populates="labels")

    def __repr__(self) -> str:
        return f"<Label(name={self.name}, color={self.color})>"
