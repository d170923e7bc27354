"""billing-doctor: legal-billing rules for time-entry spreadsheets."""

__version__ = "0.1.0"
