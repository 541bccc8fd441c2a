"""Document-level access built on the repositories."""
