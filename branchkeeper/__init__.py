"""branchkeeper: branch resolution and credential-fresh git operations for CI agents."""

__version__ = "0.1.0"
