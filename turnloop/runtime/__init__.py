"""Process lifecycle: config wiring and the interactive CLI."""
