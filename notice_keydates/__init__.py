"""
Notice key-dates - key-date extraction and personal calendar for notices.

Architecture:
- core/: Pure logic (models, Korean date parsing, key-date derivation, eligibility mapping)
- storage/: Durable key-value storage and the calendar event store
- config/: YAML-driven settings
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
