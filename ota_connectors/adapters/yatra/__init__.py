"""
Yatra Channel Connector
"""

from .connector import YatraConnector

__all__ = ["YatraConnector"]
