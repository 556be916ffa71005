"""AMM pool lifecycle adapters"""

from .pool_adapter import PoolLifecycleAdapter

__all__ = ["PoolLifecycleAdapter"]
