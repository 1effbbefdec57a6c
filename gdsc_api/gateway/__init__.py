"""GDSC API - HTTP gateway (request middleware)."""
