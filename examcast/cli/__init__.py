"""Command-line interface for examcast."""
