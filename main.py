"""
USOS API Browser

Interactive terminal client for exploring USOS API installations: lists
methods, signs and executes calls, and acquires access tokens.

Usage:
    python main.py
"""

from usos_api_browser.cli import main


if __name__ == "__main__":
    main()
