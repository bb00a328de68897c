"""Use case orchestration for the studio store.

Use cases receive the store from the composition root and own every rule
that spans more than one collection.
"""

from .studio import StudioService

__all__ = ["StudioService"]
