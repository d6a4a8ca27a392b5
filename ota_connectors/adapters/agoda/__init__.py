"""
Agoda Channel Connector

Static API key; strongest in South-East Asia. Reports net amounts.
"""

from .connector import AgodaConnector

__all__ = ["AgodaConnector"]
