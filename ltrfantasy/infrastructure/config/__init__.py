"""Configuration loading (.env, environment, YAML) and typed settings."""
