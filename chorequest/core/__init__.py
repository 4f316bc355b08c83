"""Infrastructure layer: configuration, logging, database, events, exceptions."""
