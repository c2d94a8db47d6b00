"""Hub API server access."""

from .kube import KubeClient, format_timestamp, parse_timestamp, translate_api_error

__all__ = [
    "KubeClient",
    "format_timestamp",
    "parse_timestamp",
    "translate_api_error",
]
