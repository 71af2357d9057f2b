"""LeadAgent — natural-language property lead search over a streaming chat API."""

__version__ = "1.0.0"
