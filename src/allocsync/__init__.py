"""AllocSync - equipment allocation conflict engine."""

__version__ = "0.1.0"
