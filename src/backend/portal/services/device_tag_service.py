"""Read access to the tenant's custom device tag catalogue."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from portal.models.device_tag import DeviceTag


class DeviceTagService:
    """Service for listing the custom tags visible on devices."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_all_tag_names(self) -> list[str]:
        result = await self.db.execute(select(DeviceTag.name).order_by(DeviceTag.name))
        return list(result.scalars().all())
