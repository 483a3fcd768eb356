"""Job alert dispatcher: matches new job postings against saved alerts and pushes them to devices."""

__version__ = "1.0.0"
