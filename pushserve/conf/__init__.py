from pushserve.conf.global_settings import BaseSettings, Settings

__all__ = ["BaseSettings", "Settings"]
