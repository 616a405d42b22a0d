"""Command groups registered on the top-level app."""
