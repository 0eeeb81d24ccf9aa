"""taskrelay - webhook-driven automation rules for Asana."""

__version__ = "0.1.0"
