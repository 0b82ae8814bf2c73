"""Terminal rendering and run history for coverage results."""
