"""
Shared utilities for sandboxed_dialog front-ends.

- visualize: Rich terminal rendering of dialog events
"""

from .visualize import EventRenderer, format_json, visualize_events

__all__ = [
    "EventRenderer",
    "format_json",
    "visualize_events",
]
