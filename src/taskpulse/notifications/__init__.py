"""Notification events, per-user preferences and the dispatcher."""
