__version__ = "0.1.0"

from .aggregator import ResultAggregator
from .auth import AuthManager, TokenStore
from .cli import main
from .config import BenchConfig
from .plan import ExecutionPlan, ExecutionUnit, build_plan
from .registry import Registry, default_registry

__all__ = [
    "__version__",
    "AuthManager",
    "BenchConfig",
    "ExecutionPlan",
    "ExecutionUnit",
    "Registry",
    "ResultAggregator",
    "TokenStore",
    "build_plan",
    "default_registry",
    "main",
]
