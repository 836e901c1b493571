"""Key-value persistence backends."""
