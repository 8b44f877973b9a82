"""taskpulse: HR task lifecycle and real-time notification dispatch."""

__version__ = "0.1.0"
