"""
Ambient random number stream.

Code that has no seed of its own (picking a seed for a new map, choosing
cells to reveal in the CLI) draws from this module-level Alea PRNG. The
engines never draw from it; they get their own AleaPRNG and wrap their work
in preserved_random_state() so the ambient stream is left exactly as found.
"""

from contextlib import contextmanager
from typing import Iterator, Optional

from ..core.alea_prng import AleaPRNG

# Global PRNG instance
_prng: Optional[AleaPRNG] = None


def set_random_seed(seed) -> None:
    """Reseed the ambient PRNG."""
    global _prng
    _prng = AleaPRNG(seed)


def get_prng() -> AleaPRNG:
    """Ambient PRNG, created with a fixed seed on first use."""
    global _prng
    if _prng is None:
        _prng = AleaPRNG("default")
    return _prng


def random_seed(upper: int = 2**31 - 1) -> int:
    """Draw an integer seed from the ambient stream."""
    return get_prng().randrange(upper)


@contextmanager
def preserved_random_state() -> Iterator[None]:
    """Save the ambient PRNG and its state, and restore both on exit, even on error."""
    global _prng
    saved = _prng
    state = saved.getstate() if saved is not None else None
    try:
        yield
    finally:
        _prng = saved
        if saved is not None:
            saved.setstate(state)
