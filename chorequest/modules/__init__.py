"""Domain modules: shared service/repository foundations and the recurring engine."""
