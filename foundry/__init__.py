"""cc-foundry — install and maintain a bundled catalog of Claude Code files."""

__version__ = "2.0.0"
