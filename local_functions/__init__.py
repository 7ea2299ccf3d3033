"""Local emulator for packaged serverless actions."""

__version__ = "0.1.0"
