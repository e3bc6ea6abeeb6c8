"""Built-in CLI commands for editron-auth."""
