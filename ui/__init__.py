"""
UI module for Gradio interface.
"""

from ui.handlers import assets, analysis, session
from ui.interface import create_ui

__all__ = ["assets", "analysis", "session", "create_ui"]
