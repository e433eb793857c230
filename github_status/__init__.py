"""GitHub status monitor: poll the status API, notify Slack on transitions."""

__version__ = "1.0.0"
