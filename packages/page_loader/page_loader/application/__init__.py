"""Application layer: loader orchestration, deduplication and events."""
