"""tm-agent: answers social posts with token metrics from a data warehouse."""

__version__ = "1.0.0"
