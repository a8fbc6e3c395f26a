"""
roomcalendar - Meeting room booking calendar with half-hour slot selection.
"""

__version__ = "0.1.0"
