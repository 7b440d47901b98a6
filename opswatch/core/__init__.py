"""Core configuration, logging and task helpers."""
