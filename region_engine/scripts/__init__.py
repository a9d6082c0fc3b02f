"""Command-line entry points for the region tools."""
