"""LoRaWAN device API endpoints."""

from fastapi import APIRouter, HTTPException, status

from portal.core.deps import DbSession, DeviceRegistry
from portal.core.exceptions import (
    DeviceAlreadyExistsError,
    DeviceNotFoundError,
    InternalServerError,
    TwinMappingError,
)
from portal.schemas.device import LabelDto
from portal.schemas.lorawan import LoRaDeviceDetails
from portal.schemas.telemetry import LoRaDeviceTelemetryDto
from portal.services.lorawan_device_service import LoRaWanDeviceService

router = APIRouter()


@router.get("/available-labels", response_model=list[LabelDto])
async def get_available_labels(db: DbSession, registry: DeviceRegistry):
    """List the labels used by devices and their models."""
    service = LoRaWanDeviceService(db, registry)
    try:
        return await service.get_available_labels()
    except InternalServerError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


@router.get("/{device_id}", response_model=LoRaDeviceDetails)
async def get_device(device_id: str, db: DbSession, registry: DeviceRegistry):
    """Get a LoRaWAN device."""
    service = LoRaWanDeviceService(db, registry)
    try:
        return await service.get_device(device_id)
    except DeviceNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post("/", response_model=LoRaDeviceDetails, status_code=status.HTTP_201_CREATED)
async def create_device(payload: LoRaDeviceDetails, db: DbSession, registry: DeviceRegistry):
    """Register a LoRaWAN device in the registry and the store."""
    service = LoRaWanDeviceService(db, registry)
    try:
        return await service.create_device(payload)
    except DeviceAlreadyExistsError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except DeviceNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except TwinMappingError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except InternalServerError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


@router.put("/", response_model=LoRaDeviceDetails)
async def update_device(payload: LoRaDeviceDetails, db: DbSession, registry: DeviceRegistry):
    """Update a LoRaWAN device.

    Tags and labels in the payload replace the stored ones.
    """
    service = LoRaWanDeviceService(db, registry)
    try:
        return await service.update_device(payload)
    except DeviceNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except InternalServerError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


@router.delete("/{device_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_device(device_id: str, db: DbSession, registry: DeviceRegistry) -> None:
    """Delete a LoRaWAN device. Deleting an unknown device succeeds."""
    service = LoRaWanDeviceService(db, registry)
    try:
        await service.delete_device(device_id)
    except InternalServerError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


@router.get("/{device_id}/telemetry", response_model=list[LoRaDeviceTelemetryDto])
async def get_device_telemetry(device_id: str, db: DbSession, registry: DeviceRegistry):
    """Telemetry history of a LoRaWAN device, newest first."""
    service = LoRaWanDeviceService(db, registry)
    return await service.get_device_telemetry(device_id)
