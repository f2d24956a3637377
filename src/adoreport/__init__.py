"""adoreport — Readable reports from Azure DevOps build and test JSON."""

__version__ = "0.1.0"
