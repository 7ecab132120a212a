"""Command-line interface for openframe."""
