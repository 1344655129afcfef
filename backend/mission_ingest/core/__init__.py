"""Core configuration, logging, and shared primitives."""
