"""Hand-off of URLs to the user's web browser."""

import logging
import webbrowser

logger = logging.getLogger(__name__)


def open_in_browser(url: str) -> bool:
    """
    Open a URL in the system browser.

    Failure is not fatal: the caller can show the URL for manual copying.

    Args:
        url: URL to open

    Returns:
        True if a browser accepted the URL
    """
    try:
        opened = webbrowser.open(url)
    except webbrowser.Error as e:
        logger.warning(f"Could not launch a browser: {e}")
        return False
    if not opened:
        logger.warning(f"No browser available to open {url}")
    return opened
