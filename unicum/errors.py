"""
Exception hierarchy for the Unicum fleet monitor.

    UnicumError
    ├── ConfigurationError   missing/invalid settings (fatal at startup)
    ├── UpstreamError        non-success HTTP status or network failure
    └── CacheError           unreadable or corrupt cache file
"""

from typing import Optional


class UnicumError(Exception):
    pass


class ConfigurationError(UnicumError):
    def __init__(self, setting: str, message: Optional[str] = None):
        self.setting = setting
        super().__init__(message or f"Required setting {setting} is not configured")


class UpstreamError(UnicumError):
    def __init__(self, message: str, status_code: Optional[int] = None, url: Optional[str] = None):
        self.status_code = status_code
        self.url = url
        super().__init__(message)


class CacheError(UnicumError):
    def __init__(self, path, reason: str):
        self.path = str(path)
        super().__init__(f"Cannot read cache file {path}: {reason}")
