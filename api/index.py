"""
Serverless entry point. The hosting platform imports `app` from here and runs
it itself; set APP_ENV=production so run.py never starts a second listener.
"""

from portfolio_chat.main import app

__all__ = ["app"]
