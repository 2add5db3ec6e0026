"""Automatic declining of calendar invites that collide with blocking events."""

__version__ = "1.0.0"
