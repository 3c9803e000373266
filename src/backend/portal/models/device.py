"""Device entities: generic devices and LoRaWAN devices (single-table inheritance)."""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import String, Integer, BigInteger, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from portal.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from portal.models.device_model import DeviceModel
    from portal.models.device_tag import DeviceTagValue
    from portal.models.label import Label
    from portal.models.lora_telemetry import LoRaDeviceTelemetry


class Device(Base, TimestampMixin):
    """Device metadata mirrored from the external device registry."""

    __tablename__ = "devices"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    device_model_id: Mapped[str] = mapped_column(
        String(128),
        ForeignKey("device_models.id"),
        nullable=False,
        index=True,
    )

    # Registry-owned state, refreshed from the twin on every sync
    is_connected: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    status_updated_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    device_kind: Mapped[str] = mapped_column(String(20), nullable=False, default="device")

    device_model: Mapped["DeviceModel"] = relationship("DeviceModel")
    tags: Mapped[list["DeviceTagValue"]] = relationship(
        "DeviceTagValue",
        back_populates="device",
        cascade="all, delete-orphan",
    )
    labels: Mapped[list["Label"]] = relationship(
        "Label",
        back_populates="device",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {
        "polymorphic_on": "device_kind",
        "polymorphic_identity": "device",
    }

    def __repr__(self) -> str:
        return f"<Device(id={self.id}, name={self.name}, model={self.device_model_id})>"


class LorawanDevice(Device):
    """LoRaWAN device with network-server settings and a bounded telemetry history."""

    # OTAA / ABP credentials
    use_otaa: Mapped[bool | None] = mapped_column(Boolean, default=True, nullable=True)
    app_key: Mapped[str | None] = mapped_column(String(64), nullable=True)
    app_eui: Mapped[str | None] = mapped_column(String(64), nullable=True)
    app_s_key: Mapped[str | None] = mapped_column(String(64), nullable=True)
    nwk_s_key: Mapped[str | None] = mapped_column(String(64), nullable=True)
    dev_addr: Mapped[str | None] = mapped_column(String(32), nullable=True)
    already_logged_in_once: Mapped[bool | None] = mapped_column(Boolean, default=False, nullable=True)

    # Reported by the device (adaptive data rate)
    data_rate: Mapped[str | None] = mapped_column(String(32), nullable=True)
    tx_power: Mapped[str | None] = mapped_column(String(32), nullable=True)
    nb_rep: Mapped[str | None] = mapped_column(String(32), nullable=True)
    reported_rx2_data_rate: Mapped[str | None] = mapped_column(String(32), nullable=True)
    reported_rx1_dr_offset: Mapped[str | None] = mapped_column(String(32), nullable=True)
    reported_rx_delay: Mapped[str | None] = mapped_column(String(32), nullable=True)

    # Network server settings
    sensor_decoder: Mapped[str | None] = mapped_column(String(500), nullable=True)
    gateway_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    downlink: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    class_type: Mapped[str | None] = mapped_column(String(1), default="A", nullable=True)
    preferred_window: Mapped[int | None] = mapped_column(Integer, default=0, nullable=True)
    deduplication: Mapped[str | None] = mapped_column(String(10), default="None", nullable=True)
    rx1_dr_offset: Mapped[int | None] = mapped_column(Integer, nullable=True)
    rx2_data_rate: Mapped[int | None] = mapped_column(Integer, nullable=True)
    rx_delay: Mapped[int | None] = mapped_column(Integer, nullable=True)
    abp_relax_mode: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    fcnt_up_start: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    fcnt_down_start: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    fcnt_reset_counter: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    supports_32bit_fcnt: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    keep_alive_timeout: Mapped[int | None] = mapped_column(Integer, nullable=True)

    telemetry: Mapped[list["LoRaDeviceTelemetry"]] = relationship(
        "LoRaDeviceTelemetry",
        back_populates="device",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {
        "polymorphic_identity": "lorawan",
    }

    def __repr__(self) -> str:
        return f"<LorawanDevice(id={self.id}, name={self.name}, otaa={self.use_otaa})>"
