"""
Assetfolio - Gradio app entry point.

Initializes storage and the application context, then serves the UI behind
the local auth provider.
"""

from core.database import init_db
from core.log import get_logger
from ui.context import init_app_context, teardown_app_context
from ui.interface import create_ui

logger = get_logger("app")


def main():
    """Entry point for the application."""
    init_db()
    context = init_app_context()
    demo = create_ui()
    logger.info("Starting Assetfolio")
    try:
        demo.launch(auth=context.auth.authenticate, auth_message="Sign in to Assetfolio")
    finally:
        teardown_app_context()


__all__ = ["main", "create_ui"]


if __name__ == "__main__":
    main()
