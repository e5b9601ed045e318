"""Keep local configuration files in sync with records in a relational store."""

__version__ = "0.1.0"
