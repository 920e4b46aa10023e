"""Custom exceptions for the Swaptitude session services"""


class SwaptitudeError(Exception):
    """Base exception for Swaptitude"""
    pass


class ConfigError(SwaptitudeError):
    """Configuration error"""
    pass


class ProfileStoreError(SwaptitudeError):
    """Profile storage is unreadable or corrupt"""
    pass
