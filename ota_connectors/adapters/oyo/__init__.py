"""
OYO Channel Connector
"""

from .connector import OYOConnector

__all__ = ["OYOConnector"]
