"""Administrative override and audit trail engine."""

__version__ = "0.1.0"
