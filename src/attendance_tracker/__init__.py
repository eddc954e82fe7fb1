"""Local-first attendance tracking with spreadsheet sync."""

__version__ = "0.1.0"
