"""Core utilities: exceptions, glob matching and version information."""
