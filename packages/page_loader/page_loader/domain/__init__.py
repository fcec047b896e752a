"""Domain layer: entities, interfaces, and rules independent of I/O."""
