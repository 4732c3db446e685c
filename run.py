"""
RUN SCRIPT - Start the Portfolio Chat server
============================================

PURPOSE:
  Entry point for running the backend locally or on a plain VM.

WHAT IT DOES:
  - Reads HOST, PORT and APP_ENV from the environment (.env is honoured).
  - Runs portfolio_chat.main:app with uvicorn.
  - In hosted/serverless mode (APP_ENV=production) the platform imports the
    app itself (see api/index.py), so this script logs and exits instead of listening.

USAGE:
  python run.py          (or the `portfolio-chat` console script)

  Then POST to http://localhost:3000/api/chat, or open http://localhost:3000/docs.

NOTE:
  Before running, set LLM_PROVIDER and that provider's credentials in .env
  (OPENAI_API_KEY, AWS_REGION, or GROQ_API_KEY).
"""

import logging

import uvicorn

from config import Settings

logger = logging.getLogger("PortfolioChat")


def main() -> None:
    settings = Settings.from_env()

    if settings.is_production:
        logging.basicConfig(level=settings.log_level)
        logger.info("APP_ENV=production: not starting a local listener (the platform serves the app).")
        return

    uvicorn.run(
        "portfolio_chat.main:app",  # String path to the FastAPI app instance (module:variable).
        host=settings.host,
        port=settings.port,
        reload=True,                # Auto-restart when .py files change (useful during development).
        log_level=settings.log_level.lower(),
    )


# ------------------------------------------------------------------------------
# ENTRY POINT
# ------------------------------------------------------------------------------
# Only run uvicorn when this file is executed directly (python run.py),
# not when it is imported by another module.
if __name__ == "__main__":
    main()
