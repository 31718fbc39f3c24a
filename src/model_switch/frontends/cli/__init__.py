"""Command line interface for claude-model-switch."""
