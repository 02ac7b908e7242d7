"""Vision provider integrations."""
