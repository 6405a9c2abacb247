"""Queue-driven, multi-tenant file storage gateway."""

__version__ = "0.1.0"
