"""Domain models: naming, features, services and their configuration."""
