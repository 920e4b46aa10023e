"""Swaptitude session lifecycle services"""

__version__ = "1.0.0"
