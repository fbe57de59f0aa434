"""On-disk signing identities."""

__all__ = []
