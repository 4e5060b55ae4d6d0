"""Core infrastructure: logging and HTTP client construction."""
