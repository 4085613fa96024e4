"""Command-line surface of rel."""
