"""
Meeting Bot orchestrator.

Runs one calendar-polling bot per workspace that joins Zoom, Teams and
Google Meet meetings shortly before they start.
"""

__version__ = "1.0.0"
