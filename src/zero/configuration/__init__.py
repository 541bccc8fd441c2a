"""Configuration loaded from config/app_config.yml."""
