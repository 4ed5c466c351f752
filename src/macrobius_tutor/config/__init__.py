from .loader import load_settings
from .schema import (
    AdaptationConfig,
    BackendConfig,
    LoggingConfig,
    PathsConfig,
    ProfileDefaults,
    RecommendationConfig,
    ReviewConfig,
    Settings,
)

__all__ = [
    "AdaptationConfig",
    "BackendConfig",
    "LoggingConfig",
    "PathsConfig",
    "ProfileDefaults",
    "RecommendationConfig",
    "ReviewConfig",
    "Settings",
    "load_settings",
]
