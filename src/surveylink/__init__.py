"""Record linkage and data-quality flagging for a multi-wave participant survey."""

__version__ = "0.1.0"
