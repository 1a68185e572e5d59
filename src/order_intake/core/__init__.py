"""Configuration, database, logging and shared types."""
