"""Core infrastructure: settings, database engine, ORM models, logging."""
