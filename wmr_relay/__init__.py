"""Oregon Scientific WMR100 to MQTT relay."""

__version__ = "0.4.0"
