"""LoRaWAN telemetry history entity."""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import String, DateTime, JSON, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from portal.models.base import Base

if TYPE_CHECKING:
    from portal.models.device import LorawanDevice


class LoRaDeviceTelemetry(Base):
    """One uplink message kept in a LoRaWAN device's bounded history.

    The identity is the event stream sequence number, unique per device.
    """

    __tablename__ = "lora_device_telemetry"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    device_id: Mapped[str] = mapped_column(
        String(128),
        ForeignKey("devices.id", ondelete="CASCADE"),
        primary_key=True,
    )
    enqueued_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
    telemetry: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)

    device: Mapped["LorawanDevice"] = relationship("LorawanDevice", back_populates="telemetry")

    def __repr__(self) -> str:
        return f"<LoRaDeviceTelemetry(id={self.id}, device_id={self.device_id}, enqueued={self.enqueued_time})>"
