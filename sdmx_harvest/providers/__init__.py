from .base import DataflowSource
from .sdmx_registry import SdmxRegistrySource
from .static import StaticDataflowSource

__all__ = ["DataflowSource", "SdmxRegistrySource", "StaticDataflowSource"]
