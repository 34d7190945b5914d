"""certgen tests."""
