"""HTTP API for the claims portal."""
