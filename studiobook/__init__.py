"""Booking scheduling, pricing and payment lifecycle engine for photo studios."""

__version__ = "0.1.0"
