"""Python streaming client for the chat API."""
