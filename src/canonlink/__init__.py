"""canonlink: entity-mention detection and resolution for fiction canon graphs."""

__version__ = "0.1.0"
