"""sigbridge: inbound Signal bridge for chat agents."""

__version__ = "0.1.0"
