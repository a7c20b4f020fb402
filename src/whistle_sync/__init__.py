"""Whistle Sync - polls the Whistle pet tracker API and publishes dog metrics."""

__version__ = "0.8.0"
