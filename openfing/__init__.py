"""OpenFing - fast local network device scanner."""

__version__ = "1.0.0"
