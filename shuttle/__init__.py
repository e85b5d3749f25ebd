"""Shuttle Booking Service: shared trips with dynamic, retroactively refunded pricing"""

__version__ = "1.0.0"
