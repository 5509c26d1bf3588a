"""Feed Index - periodic rebuild of the per-user activity feed search index."""

__version__ = "0.1.0"
