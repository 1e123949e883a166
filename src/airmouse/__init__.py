"""AirMouse host: drive the desktop pointer from a handheld motion sensor."""

__version__ = "1.0.0"
