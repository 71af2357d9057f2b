"""Upstream clients — parameter extraction model and property search."""
