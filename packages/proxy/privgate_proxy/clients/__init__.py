"""HTTP clients for dependent services."""
