"""Session wiring and the command line entry point."""
