"""REST API surface of the page loader."""
