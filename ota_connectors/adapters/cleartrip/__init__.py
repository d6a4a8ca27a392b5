"""
Cleartrip Channel Connector

HMAC-signed Authorization header, small bulk batches.
"""

from .connector import CleartripConnector

__all__ = ["CleartripConnector"]
