"""rel: resumable release orchestrator."""

__version__ = "0.1.0"
