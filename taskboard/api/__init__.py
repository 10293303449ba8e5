"""HTTP boundary for the task board."""
