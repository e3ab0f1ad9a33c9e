"""
coachslots - availability rules and bookable windows for coaching sessions.
"""

__version__ = "0.1.0"
