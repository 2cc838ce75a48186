"""Application services - triggers, maintenance and operator actions."""

from reelsync.application.services.maintenance_service import (
    MaintenanceReport,
    MaintenanceRunner,
)
from reelsync.application.services.sync_operations import SyncOperations
from reelsync.application.services.sync_triggers import (
    SyncTriggers,
    register_default_triggers,
    validate_sync_settings,
)

__all__ = [
    "MaintenanceReport",
    "MaintenanceRunner",
    "SyncOperations",
    "SyncTriggers",
    "register_default_triggers",
    "validate_sync_settings",
]
