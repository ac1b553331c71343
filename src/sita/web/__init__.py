"""SITA web surface."""
