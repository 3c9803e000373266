"""Tests for LoRaWanDeviceService."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog.testing import capture_logs

from portal.core.exceptions import (
    DeviceAlreadyExistsError,
    DeviceNotFoundError,
    InternalServerError,
    RegistryDeviceNotFoundError,
    TwinMappingError,
)
from portal.models import DeviceModel, Label, LoRaDeviceTelemetry, LorawanDevice
from portal.schemas.device import LabelDto
from portal.schemas.lorawan import ClassType, LoRaDeviceDetails
from portal.schemas.telemetry import TelemetryEvent
from portal.services.lorawan_device_service import LoRaWanDeviceService
from portal.services.telemetry_ingestion_service import TelemetryIngestionResult
from portal.twin.registry import InMemoryDeviceRegistry
from portal.twin.snapshot import TwinStatus

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def service(db_session: AsyncSession, registry: InMemoryDeviceRegistry, image_service) -> LoRaWanDeviceService:
    return LoRaWanDeviceService(db_session, registry, image_service=image_service)


def new_device(device_id: str = "lora-2", **kwargs) -> LoRaDeviceDetails:
    kwargs.setdefault("model_id", "m1")
    kwargs.setdefault("device_name", "Sensor 2")
    kwargs.setdefault("is_enabled", True)
    kwargs.setdefault("app_eui", "0000000000000002")
    kwargs.setdefault("app_key", "00112233445566778899AABBCCDDEE02")
    return LoRaDeviceDetails(device_id=device_id, **kwargs)


def telemetry_event(sequence_number: int, device_id: str = "lora-1") -> TelemetryEvent:
    return TelemetryEvent(
        sequence_number=sequence_number,
        enqueued_time=BASE_TIME + timedelta(minutes=sequence_number),
        system_properties={
            "iothub-connection-auth-method": {"scope": "device", "type": "sas"},
            "iothub-connection-device-id": device_id,
        },
        body='{"time": "2024-05-01T12:00:00Z", "rssi": -70}',
    )


class TestGetDevice:
    """Tests for reading devices."""

    @pytest.mark.asyncio
    async def test_get_device(self, service, lorawan_device: LorawanDevice):
        details = await service.get_device("lora-1")

        assert details.device_id == "lora-1"
        assert details.device_name == "Sensor 1"
        assert details.model_id == "m1"
        assert details.app_eui == "0000000000000001"
        assert details.image_url == "http://images.test/models/m1/avatar"
        assert details.version == 1

    @pytest.mark.asyncio
    async def test_get_device_not_found(self, service, test_model: DeviceModel):
        with pytest.raises(DeviceNotFoundError):
            await service.get_device("ghost")

    @pytest.mark.asyncio
    async def test_tags_follow_catalogue(self, service, test_model, device_tags):
        """Only catalogue tags are returned; missing ones come back empty."""
        await service.create_device(new_device(tags={"assetId": "A-7", "legacy": "x"}))

        details = await service.get_device("lora-2")

        assert details.tags == {"assetId": "A-7", "location": ""}

    @pytest.mark.asyncio
    async def test_check_if_device_exists(self, service, lorawan_device: LorawanDevice):
        assert await service.check_if_device_exists("lora-1") is True
        assert await service.check_if_device_exists("ghost") is False


class TestCreateDevice:
    """Tests for device creation."""

    @pytest.mark.asyncio
    async def test_create_device(self, service, registry: InMemoryDeviceRegistry, test_model: DeviceModel):
        """The device is registered with its twin and mirrored in the store."""
        created = await service.create_device(
            new_device(class_type=ClassType.C, labels=[LabelDto(name="site", color="red")])
        )

        assert created.device_id == "lora-2"
        assert created.version == 1
        assert created.is_enabled is True
        assert created.class_type == ClassType.C
        assert created.labels == [LabelDto(name="site", color="red")]

        twin = await registry.get_device_twin("lora-2")
        assert twin.tags["modelId"] == "m1"
        assert twin.tags["supportLoRaFeatures"] == "true"
        assert twin.desired["AppEUI"] == "0000000000000002"
        assert twin.desired["ClassType"] == "C"
        assert twin.status == TwinStatus.ENABLED

    @pytest.mark.asyncio
    async def test_create_duplicate(self, service, lorawan_device: LorawanDevice):
        with pytest.raises(DeviceAlreadyExistsError):
            await service.create_device(new_device("lora-1"))

    @pytest.mark.asyncio
    async def test_create_without_model(self, service, registry: InMemoryDeviceRegistry):
        with pytest.raises(TwinMappingError):
            await service.create_device(new_device(model_id=None))

        with pytest.raises(RegistryDeviceNotFoundError):
            await registry.get_device_twin("lora-2")

    @pytest.mark.asyncio
    async def test_create_with_unknown_model(self, service, registry: InMemoryDeviceRegistry, test_model):
        """An unknown model is refused before the registry is touched."""
        with pytest.raises(DeviceNotFoundError):
            await service.create_device(new_device(model_id="m9"))

        with pytest.raises(RegistryDeviceNotFoundError):
            await registry.get_device_twin("lora-2")

    @pytest.mark.asyncio
    async def test_store_failure_raises_internal_error(
        self,
        service,
        registry: InMemoryDeviceRegistry,
        db_session: AsyncSession,
        test_model: DeviceModel,
        monkeypatch: pytest.MonkeyPatch,
    ):
        """The registered twin is removed again when the store rejects the device."""
        async def failing_commit():
            raise SQLAlchemyError("connection lost")

        monkeypatch.setattr(db_session, "commit", failing_commit)

        with capture_logs() as logs:
            with pytest.raises(InternalServerError):
                await service.create_device(new_device())

        assert any(log["log_level"] == "error" for log in logs)
        with pytest.raises(RegistryDeviceNotFoundError):
            await registry.get_device_twin("lora-2")

    @pytest.mark.asyncio
    async def test_full_range_frame_counters(self, service, test_model: DeviceModel):
        """32-bit frame counters are stored without overflow."""
        await service.create_device(
            new_device(fcnt_up_start=4294967295, fcnt_down_start=4294967294, fcnt_reset_counter=4294967293)
        )

        details = await service.get_device("lora-2")

        assert details.fcnt_up_start == 4294967295
        assert details.fcnt_down_start == 4294967294
        assert details.fcnt_reset_counter == 4294967293

    @pytest.mark.asyncio
    async def test_omitted_radio_settings_read_back_as_fallbacks(
        self,
        service,
        registry: InMemoryDeviceRegistry,
        test_model: DeviceModel,
    ):
        """Store and twin agree on the fallbacks of unset radio settings."""
        created = await service.create_device(new_device())

        twin = await registry.get_device_twin("lora-2")
        from_twin = service.twin_mapper.create_details(twin)

        assert "PreferredWindow" not in twin.desired
        assert "ClassType" not in twin.desired
        assert created.preferred_window == from_twin.preferred_window == 0
        assert created.class_type == from_twin.class_type == ClassType.A
        assert created.deduplication == from_twin.deduplication


class TestUpdateDevice:
    """Tests for device updates."""

    @pytest.mark.asyncio
    async def test_update_device(self, service, registry: InMemoryDeviceRegistry, test_model, device_tags):
        """Status and desired properties reach the registry, then the store."""
        await service.create_device(new_device(tags={"assetId": "A-1"}, labels=[LabelDto(name="a", color="red")]))

        updated = await service.update_device(
            new_device(
                device_name="Renamed",
                is_enabled=False,
                class_type=ClassType.C,
                rx_delay=3,
                tags={"location": "roof"},
                labels=[LabelDto(name="b", color="blue")],
            )
        )

        assert updated.device_name == "Renamed"
        assert updated.is_enabled is False
        assert updated.class_type == ClassType.C
        assert updated.rx_delay == 3
        assert updated.version == 3
        assert updated.tags == {"assetId": "", "location": "roof"}
        assert updated.labels == [LabelDto(name="b", color="blue")]

        twin = await registry.get_device_twin("lora-2")
        assert twin.status == TwinStatus.DISABLED
        assert twin.desired["RXDelay"] == 3
        assert twin.tags["deviceName"] == "Renamed"

    @pytest.mark.asyncio
    async def test_update_unknown_device(self, service, test_model: DeviceModel):
        with pytest.raises(DeviceNotFoundError):
            await service.update_device(new_device("ghost"))

    @pytest.mark.asyncio
    async def test_update_device_missing_from_registry(self, service, lorawan_device: LorawanDevice):
        """A stored device the registry does not know cannot be updated."""
        with pytest.raises(DeviceNotFoundError):
            await service.update_device(new_device("lora-1"))


class TestDeleteDevice:
    """Tests for device deletion."""

    @pytest.mark.asyncio
    async def test_delete_device(self, service, registry: InMemoryDeviceRegistry, db_session, test_model):
        await service.create_device(new_device())

        await service.delete_device("lora-2")

        assert await service.check_if_device_exists("lora-2") is False
        assert [page async for page in registry.list_twins()] == []

    @pytest.mark.asyncio
    async def test_delete_removes_telemetry(self, service, db_session: AsyncSession, lorawan_device: LorawanDevice):
        """The telemetry history goes with the device; registry absence is a warning."""
        for seq in (1, 2):
            assert await service.process_telemetry_event(telemetry_event(seq)) == TelemetryIngestionResult.STORED

        with capture_logs() as logs:
            await service.delete_device("lora-1")

        assert "warning" in [log["log_level"] for log in logs]
        rows = await db_session.execute(select(LoRaDeviceTelemetry))
        assert rows.scalars().all() == []

    @pytest.mark.asyncio
    async def test_delete_unknown_device_is_noop(self, service, test_model: DeviceModel):
        await service.delete_device("ghost")


class TestTelemetryAndLabels:
    """Tests for telemetry history and label listing."""

    @pytest.mark.asyncio
    async def test_telemetry_newest_first(self, service, lorawan_device: LorawanDevice):
        for seq in (1, 3, 2):
            await service.process_telemetry_event(telemetry_event(seq))

        history = await service.get_device_telemetry("lora-1")

        assert [record.id for record in history] == ["3", "2", "1"]
        assert history[0].telemetry.rssi == -70

    @pytest.mark.asyncio
    async def test_telemetry_of_unknown_device_is_empty(self, service, test_model: DeviceModel):
        assert await service.get_device_telemetry("ghost") == []

    @pytest.mark.asyncio
    async def test_telemetry_of_device_without_history(self, service, lorawan_device: LorawanDevice):
        assert await service.get_device_telemetry("lora-1") == []

    @pytest.mark.asyncio
    async def test_available_labels(self, service, db_session: AsyncSession, lorawan_device: LorawanDevice):
        """Device labels and labels of used models, without unused models."""
        db_session.add(Label(name="site", color="red", device_id="lora-1"))
        db_session.add(
            DeviceModel(
                id="unused",
                name="Unused model",
                labels=[Label(name="never", color="black")],
            )
        )
        await db_session.commit()

        labels = await service.get_available_labels()

        assert labels == [
            LabelDto(name="outdoor", color="#00ff00"),
            LabelDto(name="site", color="red"),
        ]
