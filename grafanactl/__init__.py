"""Grafana resource model, selectors, secret redaction, push/pull/delete orchestration and live reload."""

__version__ = "0.1.0"

__all__ = [
    "resources",
    "selector",
    "redactor",
    "folder_hierarchy",
    "pusher",
    "puller",
    "deleter",
    "livereload",
]