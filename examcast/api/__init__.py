"""HTTP API for examcast."""
