"""Infrastructure layer: storage, HTTP transport, logging and monitoring."""
