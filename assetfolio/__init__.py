"""
Assetfolio - Track a multi-currency portfolio with cached USD conversion.
Signs idle sessions out automatically.
"""

__version__ = "0.1.0"

from assetfolio.app import main, create_ui

__all__ = ["main", "create_ui"]
