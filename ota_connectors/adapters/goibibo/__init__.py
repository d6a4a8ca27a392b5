"""
Goibibo Channel Connector

HMAC-signed requests.
"""

from .connector import GoibiboConnector

__all__ = ["GoibiboConnector"]
