"""Hyprland state watcher for status bars.

This package provides a watcher that listens on the Hyprland event socket and
re-queries the control socket whenever a relevant event arrives, printing one
JSON line per change.
"""

__version__ = "0.1.0"
