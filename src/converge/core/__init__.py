"""Core types: faults, classification, cancellation, configuration and logging."""
