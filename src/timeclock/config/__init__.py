from timeclock.config.settings import Settings, strtobool

__all__ = ["Settings", "strtobool"]
