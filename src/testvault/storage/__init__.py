"""Storage layer: configuration, database access and the persistence gateway."""
