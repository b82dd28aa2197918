"""Core configuration and shared error types."""
