"""
Session handlers for Gradio UI (idle logout polling, manual sign-out).
"""

from ui.context import get_app_context


def poll_session(visible: bool = True) -> str:
    """
    Periodic browser poll.

    Forwards the tab's visibility to the idle monitor, then returns a pending
    redirect target (or an empty string when there is none).
    """
    context = get_app_context()
    if context.current_user() is not None:
        context.events.emit_visibility(bool(visible))
    return context.take_redirect() or ""


def handle_sign_out() -> str:
    """Sign out through the same path the idle monitor uses."""
    context = get_app_context()
    if context.monitor is not None and context.current_user() is not None:
        context.monitor.perform_logout()
    return context.take_redirect() or context.settings.login_path
