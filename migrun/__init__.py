"""migrun: operator control of resumable data-migration jobs."""

__version__ = "0.1.0"
