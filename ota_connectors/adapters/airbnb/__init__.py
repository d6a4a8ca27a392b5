"""
Airbnb Channel Connector

Listing-level calendar API without bulk updates.
"""

from .connector import AirbnbConnector

__all__ = ["AirbnbConnector"]
