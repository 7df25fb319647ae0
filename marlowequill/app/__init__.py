"""FastAPI application for the MarloweQuill content service."""
