"""Re-run scripts in a watched directory when their content changes."""

__version__ = "0.1.0"
