"""Feature-flag table schema, migrations and store access."""

from .apply import apply_schema, revert_schema, verify_schema
from .errors import FeatureFlagNotFoundError, FlipDbError, SchemaConflict, StoreUnavailable
from .metadata import NAMING_CONVENTION, metadata, utc_now
from .repository import FeatureFlagRecord, FeatureFlagRepository
from .schema import FEATURES_TABLE, SchemaInspection, SchemaState, flip_features, inspect_schema
from .settings import Settings, get_settings, reload_settings
from .types import UTCDateTime

__all__ = [
    "FEATURES_TABLE",
    "NAMING_CONVENTION",
    "FeatureFlagNotFoundError",
    "FeatureFlagRecord",
    "FeatureFlagRepository",
    "FlipDbError",
    "SchemaConflict",
    "SchemaInspection",
    "SchemaState",
    "Settings",
    "StoreUnavailable",
    "UTCDateTime",
    "apply_schema",
    "flip_features",
    "get_settings",
    "inspect_schema",
    "metadata",
    "reload_settings",
    "revert_schema",
    "utc_now",
    "verify_schema",
]
