"""
prismaflow

PRISMA screening workflow core: dedup, flow-diagram ledger and the candidate
decision lifecycle of a systematic review.
"""

__version__ = "0.1.0"

from prismaflow.config import Settings, get_settings

__all__ = ["Settings", "get_settings", "__version__"]
