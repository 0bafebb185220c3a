"""
Scheduler package for timetable change detection and feed publication.

This package contains:
- Interval scheduler for WebUntis refreshes
- Snapshot differ and window filter
- Content fingerprinting and deduplication
- Notification history and persistence
- RSS feed generation
"""

__version__ = "1.0.0"
