"""Session credential lifecycle service."""
