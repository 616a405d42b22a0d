"""Command-line interface for stdiorpc."""
