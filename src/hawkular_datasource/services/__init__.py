"""
Service-layer helpers wiring the catalogue, registry and executors together.
"""

from .datasources import DataSourceServices, build_default_registry, run_batch

__all__ = ["DataSourceServices", "build_default_registry", "run_batch"]
