"""
COMPLETION PROVIDERS MODULE
===========================

One interface, several hosted LLMs. The chat service only ever calls

    await provider.generate(system_prompt, user_message, max_tokens) -> str

and the deployment picks the backend with LLM_PROVIDER:

  openai   - OpenAIProvider   (langchain_openai.ChatOpenAI)
  bedrock  - BedrockProvider  (langchain_aws.ChatBedrockConverse, Claude on AWS)
  groq     - GroqProvider     (langchain_groq.ChatGroq)

SHARED BEHAVIOUR (LangChainProvider):
  - The prompt is a ChatPromptTemplate: system message (profile + instructions,
    curly braces escaped) followed by the user's message.
  - The whole call, retries included, is bounded by timeout_seconds. A timeout
    is reported as ProviderError(code="ETIMEDOUT").
  - Transient failures (throttling, 5xx, connection drops) are retried with
    exponential backoff; anything else fails on the first attempt.
  - Every failure leaves this module as ProviderError("<label> error: ...", code).
  - Chat model objects are created lazily and cached per max_tokens value.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterator, Optional

from langchain_aws import ChatBedrockConverse
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.prompts import ChatPromptTemplate
from langchain_groq import ChatGroq
from langchain_openai import ChatOpenAI

from config import TEMPERATURE, TOP_P, Settings
from portfolio_chat.errors import ProviderError
from portfolio_chat.utils.retry import with_retry

logger = logging.getLogger("PortfolioChat")

# Error codes (AWS and OpenAI-style) that mean "try again shortly".
TRANSIENT_ERROR_CODES = {
    "ThrottlingException",
    "TooManyRequestsException",
    "ServiceUnavailableException",
    "InternalServerException",
    "ModelNotReadyException",
    "ModelTimeoutException",
    "rate_limit_exceeded",
    "server_error",
}


# ==============================================================================
# HELPERS
# ==============================================================================

def escape_curly_braces(text: str) -> str:
    """Escape { and } so ChatPromptTemplate treats profile text literally."""
    return text.replace("{", "{{").replace("}", "}}")


def _exception_chain(exc: BaseException) -> Iterator[BaseException]:
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def error_code(exc: BaseException) -> Optional[str]:
    """
    Best-effort provider error code: the SDK's .code attribute (OpenAI, Groq),
    or botocore's response["Error"]["Code"] (Bedrock), looking through chained causes.
    """
    for e in _exception_chain(exc):
        code = getattr(e, "code", None)
        if code:
            return str(code)
        response = getattr(e, "response", None)
        if isinstance(response, dict):
            code = response.get("Error", {}).get("Code")
            if code:
                return str(code)
    return None


def _status_code(exc: BaseException) -> Optional[int]:
    for e in _exception_chain(exc):
        status = getattr(e, "status_code", None)
        if isinstance(status, int):
            return status
        response = getattr(e, "response", None)
        if isinstance(response, dict):
            status = response.get("ResponseMetadata", {}).get("HTTPStatusCode")
            if isinstance(status, int):
                return status
    return None


def is_transient_error(exc: Exception) -> bool:
    """True if the provider failure is worth retrying (throttling, 5xx, network)."""
    status = _status_code(exc)
    if status is not None and (status in (408, 429) or status >= 500):
        return True
    if error_code(exc) in TRANSIENT_ERROR_CODES:
        return True
    for e in _exception_chain(exc):
        name = type(e).__name__
        if "Timeout" in name or "Connection" in name:
            return True
    msg = str(exc).lower()
    return "rate limit" in msg or "too many requests" in msg


def _error_detail(exc: BaseException) -> str:
    return getattr(exc, "message", None) or str(exc) or type(exc).__name__


def message_text(message: Any) -> str:
    """Plain text of a chat model reply; Bedrock may return a list of content blocks."""
    content = getattr(message, "content", message)
    if isinstance(content, str):
        return content
    parts = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


# ==============================================================================
# INTERFACE
# ==============================================================================

class CompletionProvider(ABC):
    """Something that turns (system prompt, user message) into reply text."""

    name: str = ""
    label: str = ""  # used in client-facing error messages

    @abstractmethod
    async def generate(self, system_prompt: str, user_message: str, max_tokens: int) -> str:
        """Return the model's reply, stripped. Raise ProviderError on failure."""


class LangChainProvider(CompletionProvider):
    """Shared prompt, timeout, retry and error mapping for LangChain chat models."""

    def __init__(
        self,
        timeout_seconds: float = 30.0,
        max_retries: int = 2,
        retry_delay: float = 0.5,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._models: Dict[int, BaseChatModel] = {}

    @abstractmethod
    def _build_llm(self, max_tokens: int) -> BaseChatModel:
        """Create the LangChain chat model for this provider."""

    def get_llm(self, max_tokens: int) -> BaseChatModel:
        llm = self._models.get(max_tokens)
        if llm is None:
            llm = self._build_llm(max_tokens)
            self._models[max_tokens] = llm
        return llm

    async def generate(self, system_prompt: str, user_message: str, max_tokens: int) -> str:
        prompt = ChatPromptTemplate.from_messages([
            ("system", escape_curly_braces(system_prompt)),
            ("human", "{question}"),
        ])
        chain = prompt | self.get_llm(max_tokens)

        async def invoke_model():
            return await chain.ainvoke({"question": user_message})

        try:
            reply = await asyncio.wait_for(
                with_retry(
                    invoke_model,
                    max_retries=self.max_retries,
                    initial_delay=self.retry_delay,
                    should_retry=is_transient_error,
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise ProviderError(
                self.label,
                f"Request timed out after {self.timeout_seconds:g}s",
                code="ETIMEDOUT",
            ) from e
        except Exception as e:
            raise ProviderError(self.label, _error_detail(e), code=error_code(e)) from e

        text = message_text(reply).strip()
        if not text:
            raise ProviderError(self.label, "Model returned an empty response")
        return text


# ==============================================================================
# IMPLEMENTATIONS
# ==============================================================================

class OpenAIProvider(LangChainProvider):
    name = "openai"
    label = "OpenAI API"

    def __init__(self, api_key: str, model: str = "gpt-3.5-turbo", **kwargs) -> None:
        if not api_key:
            raise RuntimeError("Missing OPENAI_API_KEY in environment or .env")
        super().__init__(**kwargs)
        self.api_key = api_key
        self.model = model

    def _build_llm(self, max_tokens: int) -> BaseChatModel:
        # SDK retries are off; LangChainProvider.generate owns retry and timeout.
        return ChatOpenAI(
            model=self.model,
            api_key=self.api_key,
            max_tokens=max_tokens,
            temperature=TEMPERATURE,
            top_p=TOP_P,
            max_retries=0,
            timeout=self.timeout_seconds,
        )


class BedrockProvider(LangChainProvider):
    name = "bedrock"
    label = "Bedrock"

    def __init__(self, region: str, model_id: str, **kwargs) -> None:
        if not region:
            raise RuntimeError("Missing AWS_REGION in environment or .env")
        super().__init__(**kwargs)
        self.region = region
        self.model_id = model_id

    def _build_llm(self, max_tokens: int) -> BaseChatModel:
        # Credentials come from the standard AWS chain (env vars, profile, role).
        return ChatBedrockConverse(
            model=self.model_id,
            region_name=self.region,
            max_tokens=max_tokens,
            temperature=TEMPERATURE,
            top_p=TOP_P,
        )


class GroqProvider(LangChainProvider):
    name = "groq"
    label = "Groq API"

    def __init__(self, api_key: str, model: str = "llama-3.3-70b-versatile", **kwargs) -> None:
        if not api_key:
            raise RuntimeError("Missing GROQ_API_KEY in environment or .env")
        super().__init__(**kwargs)
        self.api_key = api_key
        self.model = model

    def _build_llm(self, max_tokens: int) -> BaseChatModel:
        return ChatGroq(
            model=self.model,
            api_key=self.api_key,
            max_tokens=max_tokens,
            temperature=TEMPERATURE,
            max_retries=0,
            timeout=self.timeout_seconds,
            model_kwargs={"top_p": TOP_P},
        )


# ==============================================================================
# FACTORY
# ==============================================================================

def build_provider(settings: Settings) -> CompletionProvider:
    """Create the provider named by settings.llm_provider. Raises on bad config."""
    common = {
        "timeout_seconds": settings.provider_timeout_seconds,
        "max_retries": settings.provider_max_retries,
    }
    provider_name = settings.llm_provider.lower()

    if provider_name == "openai":
        return OpenAIProvider(api_key=settings.openai_api_key, model=settings.openai_model, **common)
    if provider_name == "bedrock":
        return BedrockProvider(region=settings.aws_region, model_id=settings.bedrock_model_id, **common)
    if provider_name == "groq":
        return GroqProvider(api_key=settings.groq_api_key, model=settings.groq_model, **common)

    raise ValueError(
        f"Unknown LLM_PROVIDER {settings.llm_provider!r}; expected one of: openai, bedrock, groq"
    )
