"""gha-vulnscan: find GitHub Actions workflow steps that use actions with known vulnerabilities."""

__version__ = "0.1.0"
