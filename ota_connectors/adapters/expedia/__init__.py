"""
Expedia Channel Connector

Partner Central API. Request and response bodies use an "entity" envelope.
"""

from .connector import ExpediaConnector

__all__ = ["ExpediaConnector"]
