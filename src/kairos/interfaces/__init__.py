"""Data contracts shared between the resolver and the engine."""

from .frame_snapshot import ResolvedFrame

__all__ = ['ResolvedFrame']
