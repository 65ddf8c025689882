"""Fleet vehicle booking service."""
