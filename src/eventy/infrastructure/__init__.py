"""Infrastructure layer: HTTP integrations, persistence and observability."""
