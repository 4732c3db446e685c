"""
CONFIGURATION MODULE
====================

PURPOSE:
  Central place for all Portfolio Chat settings: provider credentials, model
  names, rate-limit policy, CORS origins, and the prompt blocks that shape the
  assistant's voice. One deployment serves one person's profile.

WHAT THIS FILE DOES:
  - Loads environment variables from .env (so API keys stay out of code).
  - Collects every runtime value into a frozen Settings object (Settings.from_env()).
    The app builds one Settings at startup and passes it down explicitly.
  - Holds the personality, meeting-guidance and response-guideline blocks that
    are appended to the profile document in every system prompt.
  - load_profile(): reads the profile document (data/profile.txt by default).

USAGE:
  from config import Settings, load_profile
  settings = Settings.from_env()
  profile = load_profile(settings.profile_path)
"""

import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Tuple
from dotenv import load_dotenv


# -----------------------------------------------------------------------------
# LOGGING
# -----------------------------------------------------------------------------
logger = logging.getLogger("PortfolioChat")


# -----------------------------------------------------------------------------
# ENVIRONMENT
# -----------------------------------------------------------------------------
# Load environment variables from .env file (if it exists).
load_dotenv()


# -----------------------------------------------------------------------------
# BASE PATH
# -----------------------------------------------------------------------------
BASE_DIR = Path(__file__).parent
DEFAULT_PROFILE_PATH = BASE_DIR / "data" / "profile.txt"


# ============================================================================
# REQUEST LIMITS AND GENERATION PARAMETERS
# ============================================================================
# MAX_MESSAGE_LENGTH is counted in characters; 500 is accepted, 501 is rejected.
# Temperature and top_p are fixed for every provider.

MAX_MESSAGE_LENGTH = 500
TEMPERATURE = 0.7
TOP_P = 1.0

DEFAULT_ALLOWED_ORIGINS = (
    "https://thalenabadia.com",
    "http://localhost:5501",
    "http://127.0.0.1:5501",
)

RATE_LIMIT_MESSAGE = "Too many requests from this IP, please try again after 15 minutes"


# ============================================================================
# ENV HELPERS
# ============================================================================

def _env_str(name: str, default: str = "") -> str:
    return os.getenv(name, default).strip()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r, using %s", name, raw, default)
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r, using %s", name, raw, default)
        return default


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}


def _env_list(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    return tuple(item.strip() for item in raw.split(",") if item.strip())


# ============================================================================
# SETTINGS
# ============================================================================

@dataclass(frozen=True)
class Settings:
    """
    Every configurable value of the service, read once at startup.

    Provider selection:
      llm_provider is one of "openai", "bedrock", "groq". Only the credentials of
      the selected provider are required; they are validated when the provider
      is built (see portfolio_chat.services.providers.build_provider).
    """

    # Provider selection and credentials
    llm_provider: str = "openai"
    openai_api_key: str = ""
    openai_model: str = "gpt-3.5-turbo"
    aws_region: str = "us-east-1"
    bedrock_model_id: str = "anthropic.claude-3-haiku-20240307-v1:0"
    groq_api_key: str = ""
    groq_model: str = "llama-3.3-70b-versatile"

    # Generation
    max_output_tokens: int = 100
    provider_timeout_seconds: float = 30.0
    provider_max_retries: int = 2

    # Profile and persona
    profile_path: Path = DEFAULT_PROFILE_PATH
    persona_name: str = "Thalen"
    calendly_url: str = "https://calendly.com/thalenabadia/30min"

    # HTTP surface
    allowed_origins: Tuple[str, ...] = field(default=DEFAULT_ALLOWED_ORIGINS)
    rate_limit_max_requests: int = 50
    rate_limit_window_seconds: int = 15 * 60
    trust_proxy_headers: bool = False

    # Process
    host: str = "0.0.0.0"
    port: int = 3000
    app_env: str = "development"
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        """True in hosted/serverless mode, where the platform owns the listener."""
        return self.app_env.lower() == "production"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build Settings from os.environ (after .env has been loaded)."""
        return cls(
            llm_provider=_env_str("LLM_PROVIDER", "openai").lower(),
            # OPENAI_KEY is the older variable name; still honoured so existing deployments keep working.
            openai_api_key=_env_str("OPENAI_API_KEY") or _env_str("OPENAI_KEY"),
            openai_model=_env_str("OPENAI_MODEL", "gpt-3.5-turbo"),
            aws_region=_env_str("AWS_REGION") or _env_str("AWS_DEFAULT_REGION", "us-east-1"),
            bedrock_model_id=_env_str("BEDROCK_MODEL_ID", "anthropic.claude-3-haiku-20240307-v1:0"),
            groq_api_key=_env_str("GROQ_API_KEY"),
            groq_model=_env_str("GROQ_MODEL", "llama-3.3-70b-versatile"),
            max_output_tokens=_env_int("MAX_OUTPUT_TOKENS", 100),
            provider_timeout_seconds=_env_float("PROVIDER_TIMEOUT_SECONDS", 30.0),
            provider_max_retries=max(1, _env_int("PROVIDER_MAX_RETRIES", 2)),
            profile_path=Path(_env_str("PROFILE_PATH") or DEFAULT_PROFILE_PATH),
            persona_name=_env_str("PERSONA_NAME") or "Thalen",
            calendly_url=_env_str("CALENDLY_URL") or "https://calendly.com/thalenabadia/30min",
            allowed_origins=_env_list("ALLOWED_ORIGINS", DEFAULT_ALLOWED_ORIGINS),
            rate_limit_max_requests=_env_int("RATE_LIMIT_MAX_REQUESTS", 50),
            rate_limit_window_seconds=_env_int("RATE_LIMIT_WINDOW_SECONDS", 15 * 60),
            trust_proxy_headers=_env_bool("TRUST_PROXY_HEADERS"),
            host=_env_str("HOST", "0.0.0.0"),
            port=_env_int("PORT", 3000),
            # NODE_ENV is accepted for deployments configured before the Python rewrite.
            app_env=_env_str("APP_ENV") or _env_str("NODE_ENV", "development"),
            log_level=_env_str("LOG_LEVEL", "INFO").upper(),
        )


# ============================================================================
# PERSONALITY CONFIGURATION
# ============================================================================
# These blocks follow the profile document (and the conversation history, if
# any) in the system prompt. {persona} and {calendly_url} are filled from
# Settings by portfolio_chat.services.prompt_builder.

PERSONALITY_PROMPT = """PERSONALITY & COMMUNICATION STYLE:
- Be conversational and engaging, like you're talking to a potential collaborator
- Show genuine interest in their questions and projects
- Be helpful and informative while staying authentic to {persona}'s voice
- Use 2-4 sentences for most responses, but feel free to elaborate when discussing interesting topics
- Ask follow-up questions when appropriate to keep the conversation flowing
- Be enthusiastic about technology, AI, and social impact projects"""

MEETING_GUIDANCE_HEADER = "MEETING SCHEDULING GUIDANCE:"

# Used when the meeting classifier fires.
MEETING_SUGGEST_GUIDANCE = (
    "- The user seems interested in collaboration or has asked multiple questions. "
    "Suggest scheduling a meeting with: \"Want to chat more about this? I'd love to schedule "
    "a quick call - here's my Calendly: {calendly_url}\""
)

# Used otherwise.
MEETING_DEFAULT_GUIDANCE = (
    "- Only suggest meeting scheduling if they ask about collaboration, partnerships, "
    "or seem very interested in working together"
)

RESPONSE_GUIDELINES = """RESPONSE GUIDELINES:
- Stay factual and use only the provided information about {persona}
- Be friendly but professional
- If asked about something not in the data, say "I'm not sure about that specific detail, but I'd be happy to connect you with {persona} directly"
- Show passion for the projects and technologies mentioned
- Keep responses natural and conversational, not robotic"""


def load_profile(path: Path = DEFAULT_PROFILE_PATH) -> str:
    """
    Read the profile document used as the base of every system prompt.

    Unlike optional data files, the profile is required: a missing or unreadable
    file raises, so the server refuses to start without it.

    Returns:
        str: File contents with surrounding whitespace stripped.
    """
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        content = f.read().strip()
    if not content:
        logger.warning("Profile document %s is empty", path)
    return content
