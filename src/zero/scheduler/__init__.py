"""Background schedulers."""
