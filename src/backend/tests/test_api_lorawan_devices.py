"""Tests for the LoRaWAN device API endpoints."""

from datetime import datetime, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from portal.models import DeviceModel, LorawanDevice
from portal.schemas.telemetry import TelemetryEvent
from portal.services.telemetry_ingestion_service import LoRaTelemetryIngestionService
from portal.twin.registry import InMemoryDeviceRegistry

BASE_URL = "/api/v1/lorawan/devices"


def device_payload(device_id: str = "lora-2", **overrides) -> dict:
    payload = {
        "device_id": device_id,
        "model_id": "m1",
        "device_name": "API sensor",
        "is_enabled": True,
        "use_otaa": True,
        "app_eui": "0000000000000002",
        "app_key": "00112233445566778899AABBCCDDEE02",
        "class_type": "A",
        "labels": [{"name": "site", "color": "red"}],
    }
    payload.update(overrides)
    return payload


class TestLoRaWanDevicesAPI:
    """Tests for /api/v1/lorawan/devices."""

    @pytest.mark.asyncio
    async def test_create_device(self, client: AsyncClient, registry: InMemoryDeviceRegistry, test_model: DeviceModel):
        response = await client.post(f"{BASE_URL}/", json=device_payload())

        assert response.status_code == 201
        data = response.json()
        assert data["device_id"] == "lora-2"
        assert data["version"] == 1
        assert data["labels"] == [{"name": "site", "color": "red"}]
        assert (await registry.get_device_twin("lora-2")).tags["deviceName"] == "API sensor"

    @pytest.mark.asyncio
    async def test_create_duplicate_returns_409(self, client: AsyncClient, test_model: DeviceModel):
        await client.post(f"{BASE_URL}/", json=device_payload())

        response = await client.post(f"{BASE_URL}/", json=device_payload())

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_create_without_model_returns_422(self, client: AsyncClient, test_model: DeviceModel):
        response = await client.post(f"{BASE_URL}/", json=device_payload(model_id=None))

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_create_with_unknown_model_returns_404(
        self,
        client: AsyncClient,
        registry: InMemoryDeviceRegistry,
        test_model: DeviceModel,
    ):
        response = await client.post(f"{BASE_URL}/", json=device_payload(model_id="m9"))

        assert response.status_code == 404
        assert [page async for page in registry.list_twins()] == []

    @pytest.mark.asyncio
    async def test_update_keeps_omitted_radio_settings(self, client: AsyncClient, test_model: DeviceModel):
        """Radio settings left out of the update keep their stored value."""
        await client.post(f"{BASE_URL}/", json=device_payload(class_type="C", deduplication="Drop", preferred_window=2))

        payload = device_payload(device_name="Renamed")
        del payload["class_type"]
        response = await client.put(f"{BASE_URL}/", json=payload)

        assert response.status_code == 200
        data = response.json()
        assert data["class_type"] == "C"
        assert data["deduplication"] == "Drop"
        assert data["preferred_window"] == 2

    @pytest.mark.asyncio
    async def test_get_device(self, client: AsyncClient, test_model: DeviceModel):
        await client.post(f"{BASE_URL}/", json=device_payload(class_type="C"))

        response = await client.get(f"{BASE_URL}/lora-2")

        assert response.status_code == 200
        data = response.json()
        assert data["device_name"] == "API sensor"
        assert data["class_type"] == "C"
        assert data["app_eui"] == "0000000000000002"

    @pytest.mark.asyncio
    async def test_get_unknown_device_returns_404(self, client: AsyncClient):
        response = await client.get(f"{BASE_URL}/ghost")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_update_device(self, client: AsyncClient, registry: InMemoryDeviceRegistry, test_model: DeviceModel):
        await client.post(f"{BASE_URL}/", json=device_payload())

        response = await client.put(
            f"{BASE_URL}/",
            json=device_payload(device_name="Renamed", is_enabled=False, rx_delay=2),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["device_name"] == "Renamed"
        assert data["is_enabled"] is False
        assert data["rx_delay"] == 2
        assert data["version"] == 3
        assert (await registry.get_device_twin("lora-2")).desired["RXDelay"] == 2

    @pytest.mark.asyncio
    async def test_update_unknown_device_returns_404(self, client: AsyncClient, test_model: DeviceModel):
        response = await client.put(f"{BASE_URL}/", json=device_payload("ghost"))

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_device(self, client: AsyncClient, test_model: DeviceModel):
        await client.post(f"{BASE_URL}/", json=device_payload())

        response = await client.delete(f"{BASE_URL}/lora-2")

        assert response.status_code == 204
        assert (await client.get(f"{BASE_URL}/lora-2")).status_code == 404

    @pytest.mark.asyncio
    async def test_delete_unknown_device_returns_204(self, client: AsyncClient):
        response = await client.delete(f"{BASE_URL}/ghost")

        assert response.status_code == 204

    @pytest.mark.asyncio
    async def test_get_telemetry(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        lorawan_device: LorawanDevice,
    ):
        ingestion = LoRaTelemetryIngestionService(db_session)
        for seq in (1, 2):
            await ingestion.process_event(TelemetryEvent(
                sequence_number=seq,
                enqueued_time=datetime(2024, 5, 1, 12, seq, tzinfo=timezone.utc),
                system_properties={
                    "iothub-connection-auth-method": {"scope": "device"},
                    "iothub-connection-device-id": "lora-1",
                },
                body='{"time": "2024-05-01T12:00:00Z", "eui": "0004A30B001C0530"}',
            ))

        response = await client.get(f"{BASE_URL}/lora-1/telemetry")

        assert response.status_code == 200
        data = response.json()
        assert [record["id"] for record in data] == ["2", "1"]
        assert data[0]["telemetry"]["eui"] == "0004A30B001C0530"

    @pytest.mark.asyncio
    async def test_get_telemetry_of_unknown_device(self, client: AsyncClient):
        response = await client.get(f"{BASE_URL}/ghost/telemetry")

        assert response.status_code == 200
        assert response.json() == []

    @pytest.mark.asyncio
    async def test_available_labels(self, client: AsyncClient, test_model: DeviceModel):
        await client.post(f"{BASE_URL}/", json=device_payload())

        response = await client.get(f"{BASE_URL}/available-labels")

        assert response.status_code == 200
        assert response.json() == [
            {"name": "outdoor", "color": "#00ff00"},
            {"name": "site", "color": "red"},
        ]


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
