"""syspkg - one interface over the system's package managers."""

__version__ = "0.1.0"
