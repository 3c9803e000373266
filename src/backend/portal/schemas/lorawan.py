"""LoRaWAN device schemas."""

from enum import Enum

from pydantic import Field

from portal.schemas.device import DeviceDetails


class ClassType(str, Enum):
    """LoRaWAN device class."""

    A = "A"
    B = "B"
    C = "C"


class DeduplicationMode(str, Enum):
    """Handling of the same uplink received by several gateways."""

    NONE = "None"
    DROP = "Drop"
    MARK = "Mark"


class LoRaDeviceDetails(DeviceDetails):
    """LoRaWAN device with join credentials, radio settings and reported state.

    ``use_otaa`` and ``already_logged_in_once`` are derived from the twin when the
    object is built by a mapper: OTAA when a desired AppEUI is present, logged in
    once when the device reported a DevAddr.

    Radio settings left as None are not written back to the twin; the mapper
    fills in their fallbacks (class A, no deduplication, window 0) on read.
    """

    use_otaa: bool = True
    class_type: ClassType | None = None

    # OTAA
    app_key: str | None = None
    app_eui: str | None = None

    # ABP
    app_s_key: str | None = None
    nwk_s_key: str | None = None
    dev_addr: str | None = None

    already_logged_in_once: bool = False

    # Reported only, never pushed back to the twin
    data_rate: str | None = None
    tx_power: str | None = None
    nb_rep: str | None = None
    reported_rx2_data_rate: str | None = None
    reported_rx1_dr_offset: str | None = None
    reported_rx_delay: str | None = None

    sensor_decoder: str | None = None
    gateway_id: str | None = None
    downlink: bool | None = None
    preferred_window: int | None = None
    deduplication: DeduplicationMode | None = None
    rx1_dr_offset: int | None = None
    rx2_data_rate: int | None = None
    rx_delay: int | None = None
    abp_relax_mode: bool | None = None
    fcnt_up_start: int | None = Field(default=None, ge=0, le=4294967295)
    fcnt_down_start: int | None = Field(default=None, ge=0, le=4294967295)
    supports_32bit_fcnt: bool | None = None
    fcnt_reset_counter: int | None = Field(default=None, ge=0, le=4294967295)
    keep_alive_timeout: int | None = None

    @property
    def is_lorawan(self) -> bool:
        return True
