"""
Booking.com Channel Connector

Largest OTA by volume. Supply API with HTTP Basic credentials issued per
connectivity partner; reports commission per reservation.
"""

from .connector import BookingComConnector

__all__ = ["BookingComConnector"]
