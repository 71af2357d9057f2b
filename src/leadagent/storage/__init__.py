"""User persistence."""
