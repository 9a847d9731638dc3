"""Domain layer: entities, DTOs, exceptions, ports and value objects."""
