"""scheduled_location — interval and on-demand location polling under a power budget."""

__version__ = "0.1.0"
