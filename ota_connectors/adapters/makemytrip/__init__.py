"""
MakeMyTrip Channel Connector

API key plus bearer token from a token exchange.
"""

from .connector import MakeMyTripConnector

__all__ = ["MakeMyTripConnector"]
