"""API Routes Module."""

from fastapi import APIRouter

from portal.api import lorawan_devices

router = APIRouter()

router.include_router(lorawan_devices.router, prefix="/lorawan/devices", tags=["LoRaWAN Devices"])
