# crane/inventory/__init__.py
from .cache import CrateCacheStore, defaultCachePath
from .controller import InventoryController
from .manifest import ManifestEntry, defaultManifestPath, loadManifest, parseManifest
from .records import DEFAULT_DESCRIPTION, OperationCursor, OperationPhase, PackageRecord, PendingOperationSet
from .state import Inventory

__all__ = [
    "CrateCacheStore",
    "defaultCachePath",
    "InventoryController",
    "ManifestEntry",
    "defaultManifestPath",
    "loadManifest",
    "parseManifest",
    "DEFAULT_DESCRIPTION",
    "OperationCursor",
    "OperationPhase",
    "PackageRecord",
    "PendingOperationSet",
    "Inventory",
]
