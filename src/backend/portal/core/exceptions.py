"""Domain exceptions shared by the mappers, services and API layer."""


class PortalError(Exception):
    """Base exception for portal operations."""
    pass


class DeviceNotFoundError(PortalError):
    """Raised when a requested device or device model does not exist."""
    pass


class DeviceAlreadyExistsError(PortalError):
    """Raised when creating a device whose identifier is already registered."""
    pass


class TwinMappingError(PortalError):
    """Raised when a twin snapshot lacks a mandatory field."""
    pass


class InternalServerError(PortalError):
    """Raised when the store fails while serving an API call."""
    pass


class RegistryDeviceNotFoundError(PortalError):
    """Raised by the device registry when it has no device with the given id."""
    pass
