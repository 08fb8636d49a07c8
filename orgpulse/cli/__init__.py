"""Command-line interface for OrgPulse."""
