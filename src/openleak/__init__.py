"""Configure OpenClaw to route model calls through the free OpenLeak proxy."""

__version__ = "1.0.0"
