"""Bookmark Insights — feed ranking, trending discovery and creator analytics for a bookmarking community."""

try:
    from importlib.metadata import version

    __version__ = version("bookmark-insights")
except Exception:
    __version__ = "0.1.0"
