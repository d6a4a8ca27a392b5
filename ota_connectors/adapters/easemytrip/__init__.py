"""
EaseMyTrip Channel Connector

Partner header authentication, bulk inventory without a size limit.
"""

from .connector import EaseMyTripConnector

__all__ = ["EaseMyTripConnector"]
