"""Small helpers shared by the watcher entry points."""
