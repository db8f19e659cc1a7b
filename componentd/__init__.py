"""componentd: REST daemon for the GitLab CI/CD component catalog."""

__version__ = "0.1.0"
