from .loader import BackendSettings, HttpSettings, RetrySettings, RuntimeSettings, Settings, load_settings
from .logging import configure_logging

__all__ = [
    "BackendSettings",
    "HttpSettings",
    "RetrySettings",
    "RuntimeSettings",
    "Settings",
    "load_settings",
    "configure_logging",
]
