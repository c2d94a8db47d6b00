"""Hub-side registration approval and spoke liveness controllers."""

__version__ = "0.1.0"
