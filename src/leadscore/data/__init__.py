"""Lead profile providers."""

from .sample import make_sample_leads
from .store import InMemoryLeadStore

__all__ = ["InMemoryLeadStore", "make_sample_leads"]
