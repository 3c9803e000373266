"""Resolves the image URL shown for a device model."""

from portal.core.config import settings


class DeviceModelImageService:
    """Builds device model image URLs from a configured base address."""

    def __init__(
        self,
        base_url: str | None = None,
        default_image: str | None = None,
    ):
        self.base_url = (base_url or settings.device_model_image_base_url).rstrip("/")
        self.default_image = default_image or settings.device_model_default_image

    def compute_image_uri(self, model_id: str | None) -> str:
        """Image URL of ``model_id``, or the default image when no model is set."""
        if not model_id:
            return self.default_image
        return f"{self.base_url}/{model_id}/avatar"
