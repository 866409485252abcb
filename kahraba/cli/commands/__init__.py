"""CLI command handlers, one module per command group."""
