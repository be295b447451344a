"""checkpipe command-line tool."""

__version__ = "0.6.0"
