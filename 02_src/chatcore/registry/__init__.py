"""Connection registry module."""

from .registry import ConnectionRegistry, FanoutChannel, IConnectionRegistry, Subscription

__all__ = ["ConnectionRegistry", "FanoutChannel", "IConnectionRegistry", "Subscription"]
