"""Order checkout and payment-state service for the kiosk network."""

__version__ = "1.0.0"
