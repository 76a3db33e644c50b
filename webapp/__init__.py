"""Web entry point for the tracker host bridge."""
