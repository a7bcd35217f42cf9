"""Style DNA Studio - style profiles and style transfer on top of the Bria API."""

__version__ = "0.1.0"

from styledna.core.bria_client import BriaApiClient, BriaApiError
from styledna.core.config import StyleDnaConfig, config

__all__ = [
    "BriaApiClient",
    "BriaApiError",
    "StyleDnaConfig",
    "config",
]
