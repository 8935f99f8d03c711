from .settings import OfflineSettings, load_settings, DEFAULT_DB_PATH

__all__ = ["OfflineSettings", "load_settings", "DEFAULT_DB_PATH"]
