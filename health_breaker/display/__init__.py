"""Console reporting and logging setup."""
