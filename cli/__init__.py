"""Command-line tools for confmirror."""
