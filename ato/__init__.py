"""Command-line client for the Automated Test Orchestrator API."""

__version__ = "1.0.0"

__all__ = ["__version__"]
