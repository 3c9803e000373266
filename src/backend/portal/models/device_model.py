"""Device model (device template) entity."""

from typing import TYPE_CHECKING

from sqlalchemy import String, Text, Boolean
from sqlalchemy.orm import Mapped, mapped_column, relationship

from portal.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from portal.models.label import Label


class DeviceModel(Base, TimestampMixin):
    """Template shared by devices of the same kind (image, labels, LoRa support)."""

    __tablename__ = "device_models"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_builtin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    support_lora_features: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    labels: Mapped[list["Label"]] = relationship(
        "Label",
        back_populates="device_model",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<DeviceModel(id={self.id}, name={self.name})>"
