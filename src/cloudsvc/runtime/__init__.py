"""Process runtime: lifetime token, signal handling, service entry point.

Runtime may import from domain, config, and api.
It must never import from cli or output.
"""

from cloudsvc.runtime.controller import LifecycleController
from cloudsvc.runtime.token import LifetimeToken

__all__ = ["LifecycleController", "LifetimeToken"]
