"""Level-triggered IngressController operator."""

__version__ = "1.0.0"
