"""Command line interface for the page loader."""
