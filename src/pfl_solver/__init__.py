"""
PFL Solver package.

Builds, signs and submits FastLane Atlas PFL bundles on Polygon.
"""

from .config import SolverConfig
from .context import SolverContext
from .errors import BundleError
from .models import Bundle, OpportunityTransaction, SolverOperation, SubmissionReceipt
from .pipeline import BundlePipeline

__all__ = [
    "SolverConfig",
    "SolverContext",
    "BundlePipeline",
    "BundleError",
    "Bundle",
    "OpportunityTransaction",
    "SolverOperation",
    "SubmissionReceipt",
]
__version__ = "0.1.0"
