"""
Couche Proxy: exécution des processus stdio.
"""

from .executor import ProcessExecutor, create_executor

__all__ = ["ProcessExecutor", "create_executor"]
