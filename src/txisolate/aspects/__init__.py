"""Behaviours auto-applied to every test, in explicit priority order."""

from txisolate.aspects.registry import (  # noqa: F401
    AppliedAspects,
    Aspect,
    AspectRegistry,
)

__all__ = ["AppliedAspects", "Aspect", "AspectRegistry"]
