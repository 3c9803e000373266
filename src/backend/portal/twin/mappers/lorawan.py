"""Twin mapper for LoRaWAN devices.

Desired properties use the network server's PascalCase wire names. Every
optional field degrades to its fallback on a missing or malformed value:

    Deduplication    -> None member
    ClassType        -> A
    PreferredWindow  -> 0
    everything else  -> None
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

import structlog

from portal.schemas.device import DeviceListItem
from portal.schemas.lorawan import ClassType, DeduplicationMode, LoRaDeviceDetails
from portal.twin.mappers.base import custom_tags, require_device_id, require_model_id
from portal.twin.mappers.device import (
    DEVICE_NAME_TAG,
    MODEL_ID_TAG,
    SUPPORT_LORA_FEATURES_TAG,
)
from portal.twin.properties import (
    get_desired_property,
    get_desired_property_as_bool,
    get_desired_property_as_enum,
    get_desired_property_as_int,
    get_reported_property,
    get_tag,
    set_desired_property,
    set_tag,
)
from portal.twin.snapshot import TwinSnapshot

if TYPE_CHECKING:
    from portal.services.device_model_image_service import DeviceModelImageService

logger = structlog.get_logger()

FCNT_MAX = 4294967295


class LoRaDesired:
    """Desired property names understood by the LoRaWAN network server."""

    APP_EUI = "AppEUI"
    APP_KEY = "AppKey"
    APP_S_KEY = "AppSKey"
    NWK_S_KEY = "NwkSKey"
    DEV_ADDR = "DevAddr"
    GATEWAY_ID = "GatewayID"
    SENSOR_DECODER = "SensorDecoder"
    CLASS_TYPE = "ClassType"
    DEDUPLICATION = "Deduplication"
    PREFERRED_WINDOW = "PreferredWindow"
    RX1_DR_OFFSET = "RX1DROffset"
    RX2_DATA_RATE = "RX2DataRate"
    RX_DELAY = "RXDelay"
    ABP_RELAX_MODE = "ABPRelaxMode"
    FCNT_UP_START = "FCntUpStart"
    FCNT_DOWN_START = "FCntDownStart"
    FCNT_RESET_COUNTER = "FCntResetCounter"
    SUPPORTS_32BIT_FCNT = "Supports32BitFCnt"
    KEEP_ALIVE_TIMEOUT = "KeepAliveTimeout"
    DOWNLINK = "Downlink"


class LoRaReported:
    """Reported property names written by the network server."""

    DEV_ADDR = "DevAddr"
    DATA_RATE = "DataRate"
    TX_POWER = "TxPower"
    NB_REP = "NbRep"
    RX2_DATA_RATE = "ReportedRX2DataRate"
    RX1_DR_OFFSET = "ReportedRX1DROffset"
    RX_DELAY = "ReportedRXDelay"


def _frame_counter(snapshot: TwinSnapshot, key: str) -> int | None:
    """Frame counters are unsigned 32-bit; anything else falls back to None."""
    value = get_desired_property_as_int(snapshot, key)
    if value is not None and not 0 <= value <= FCNT_MAX:
        logger.debug("Frame counter out of range, using fallback", key=key, value=value)
        return None
    return value


class LoRaDeviceTwinMapper:
    """Maps the twin of a LoRaWAN device to ``LoRaDeviceDetails`` and back."""

    def __init__(self, image_service: DeviceModelImageService):
        self.image_service = image_service

    def create_details(
        self,
        snapshot: TwinSnapshot,
        tag_names: Iterable[str] | None = None,
    ) -> LoRaDeviceDetails:
        device_id = require_device_id(snapshot)
        model_id = require_model_id(snapshot, get_tag(snapshot, MODEL_ID_TAG))

        return LoRaDeviceDetails(
            device_id=device_id,
            model_id=model_id,
            device_name=get_tag(snapshot, DEVICE_NAME_TAG),
            image_url=self.image_service.compute_image_uri(model_id),
            is_connected=snapshot.is_connected,
            is_enabled=snapshot.is_enabled,
            status_updated_time=snapshot.status_updated_time,
            version=snapshot.version,
            tags=custom_tags(snapshot, tag_names),
            # Derived
            use_otaa=bool(get_desired_property(snapshot, LoRaDesired.APP_EUI)),
            already_logged_in_once=get_reported_property(snapshot, LoRaReported.DEV_ADDR) is not None,
            # OTAA
            app_eui=get_desired_property(snapshot, LoRaDesired.APP_EUI),
            app_key=get_desired_property(snapshot, LoRaDesired.APP_KEY),
            # ABP
            app_s_key=get_desired_property(snapshot, LoRaDesired.APP_S_KEY),
            nwk_s_key=get_desired_property(snapshot, LoRaDesired.NWK_S_KEY),
            dev_addr=get_desired_property(snapshot, LoRaDesired.DEV_ADDR),
            # Network server settings
            gateway_id=get_desired_property(snapshot, LoRaDesired.GATEWAY_ID),
            sensor_decoder=get_desired_property(snapshot, LoRaDesired.SENSOR_DECODER),
            class_type=get_desired_property_as_enum(
                snapshot, LoRaDesired.CLASS_TYPE, ClassType, ClassType.A
            ),
            deduplication=get_desired_property_as_enum(
                snapshot, LoRaDesired.DEDUPLICATION, DeduplicationMode, DeduplicationMode.NONE
            ),
            preferred_window=get_desired_property_as_int(snapshot, LoRaDesired.PREFERRED_WINDOW) or 0,
            rx1_dr_offset=get_desired_property_as_int(snapshot, LoRaDesired.RX1_DR_OFFSET),
            rx2_data_rate=get_desired_property_as_int(snapshot, LoRaDesired.RX2_DATA_RATE),
            rx_delay=get_desired_property_as_int(snapshot, LoRaDesired.RX_DELAY),
            keep_alive_timeout=get_desired_property_as_int(snapshot, LoRaDesired.KEEP_ALIVE_TIMEOUT),
            abp_relax_mode=get_desired_property_as_bool(snapshot, LoRaDesired.ABP_RELAX_MODE),
            supports_32bit_fcnt=get_desired_property_as_bool(snapshot, LoRaDesired.SUPPORTS_32BIT_FCNT),
            downlink=get_desired_property_as_bool(snapshot, LoRaDesired.DOWNLINK),
            fcnt_up_start=_frame_counter(snapshot, LoRaDesired.FCNT_UP_START),
            fcnt_down_start=_frame_counter(snapshot, LoRaDesired.FCNT_DOWN_START),
            fcnt_reset_counter=_frame_counter(snapshot, LoRaDesired.FCNT_RESET_COUNTER),
            # Reported only
            data_rate=get_reported_property(snapshot, LoRaReported.DATA_RATE),
            tx_power=get_reported_property(snapshot, LoRaReported.TX_POWER),
            nb_rep=get_reported_property(snapshot, LoRaReported.NB_REP),
            reported_rx2_data_rate=get_reported_property(snapshot, LoRaReported.RX2_DATA_RATE),
            reported_rx1_dr_offset=get_reported_property(snapshot, LoRaReported.RX1_DR_OFFSET),
            reported_rx_delay=get_reported_property(snapshot, LoRaReported.RX_DELAY),
        )

    def create_list_item(self, snapshot: TwinSnapshot) -> DeviceListItem:
        device_id = require_device_id(snapshot)
        model_id = get_tag(snapshot, MODEL_ID_TAG)

        return DeviceListItem(
            device_id=device_id,
            device_name=get_tag(snapshot, DEVICE_NAME_TAG),
            device_model_id=model_id,
            image_url=self.image_service.compute_image_uri(model_id),
            is_connected=snapshot.is_connected,
            is_enabled=snapshot.is_enabled,
            status_updated_time=snapshot.status_updated_time,
            support_lora_features=True,
        )

    def apply_to_snapshot(self, snapshot: TwinSnapshot, item: LoRaDeviceDetails) -> None:
        """Write the editable fields of ``item`` into ``snapshot``.

        None fields leave the twin untouched. Reported-only fields are never
        written, and OTAA and ABP credentials are written independently.
        """
        set_tag(snapshot, DEVICE_NAME_TAG, item.device_name)
        set_tag(snapshot, MODEL_ID_TAG, item.model_id)
        set_tag(snapshot, SUPPORT_LORA_FEATURES_TAG, "true")

        for name, value in item.tags.items():
            set_tag(snapshot, name, value)

        set_desired_property(snapshot, LoRaDesired.APP_EUI, item.app_eui)
        set_desired_property(snapshot, LoRaDesired.APP_KEY, item.app_key)

        set_desired_property(snapshot, LoRaDesired.NWK_S_KEY, item.nwk_s_key)
        set_desired_property(snapshot, LoRaDesired.APP_S_KEY, item.app_s_key)
        set_desired_property(snapshot, LoRaDesired.DEV_ADDR, item.dev_addr)

        set_desired_property(snapshot, LoRaDesired.GATEWAY_ID, item.gateway_id)
        set_desired_property(snapshot, LoRaDesired.SENSOR_DECODER, item.sensor_decoder)

        set_desired_property(snapshot, LoRaDesired.CLASS_TYPE, item.class_type)
        set_desired_property(snapshot, LoRaDesired.DEDUPLICATION, item.deduplication)
        set_desired_property(snapshot, LoRaDesired.PREFERRED_WINDOW, item.preferred_window)
        set_desired_property(snapshot, LoRaDesired.RX1_DR_OFFSET, item.rx1_dr_offset)
        set_desired_property(snapshot, LoRaDesired.RX2_DATA_RATE, item.rx2_data_rate)
        set_desired_property(snapshot, LoRaDesired.RX_DELAY, item.rx_delay)
        set_desired_property(snapshot, LoRaDesired.ABP_RELAX_MODE, item.abp_relax_mode)
        set_desired_property(snapshot, LoRaDesired.FCNT_UP_START, item.fcnt_up_start)
        set_desired_property(snapshot, LoRaDesired.FCNT_DOWN_START, item.fcnt_down_start)
        set_desired_property(snapshot, LoRaDesired.FCNT_RESET_COUNTER, item.fcnt_reset_counter)
        set_desired_property(snapshot, LoRaDesired.SUPPORTS_32BIT_FCNT, item.supports_32bit_fcnt)
        set_desired_property(snapshot, LoRaDesired.KEEP_ALIVE_TIMEOUT, item.keep_alive_timeout)
        set_desired_property(snapshot, LoRaDesired.DOWNLINK, item.downlink)
