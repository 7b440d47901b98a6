"""In-process metrics aggregation and operator alerting."""

__version__ = "1.0.0"
