"""SoftLayer (IBM Cloud Classic Infrastructure) backend."""

from .client import SoftLayerClient, SoftLayerError
from .config import SoftLayer
from .provider import SoftLayerBackend
from .services import SoftLayerAccountApi, SoftLayerGuestApi, SoftLayerSSHKeyApi

__all__ = [
    "SoftLayer",
    "SoftLayerAccountApi",
    "SoftLayerBackend",
    "SoftLayerClient",
    "SoftLayerError",
    "SoftLayerGuestApi",
    "SoftLayerSSHKeyApi",
]
