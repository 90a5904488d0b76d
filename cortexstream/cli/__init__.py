"""Command-line interface for cortexstream."""
