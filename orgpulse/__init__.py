"""OrgPulse: GitHub organization repository and issue collection."""

__version__ = "0.1.0"
