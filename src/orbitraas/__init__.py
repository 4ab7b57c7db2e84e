"""
Orbit RaaS - Avail-backed Arbitrum Orbit rollup provisioning service
"""

__version__ = "0.1.0"

from .context import OrbitContext
from .core import Orchestrator
from .errors import OrbitError

__all__ = ["OrbitContext", "Orchestrator", "OrbitError"]
