"""Local filesystem access."""
