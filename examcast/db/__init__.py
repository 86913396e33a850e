"""Database layer for examcast."""
