"""
Provider Client for GenBench

Single point of contact with the code-generation providers. Every call is
normalized into a ``ProviderResponse``; expected failures (HTTP errors,
non-2xx responses, malformed bodies, network problems) never raise past this
module. Malformed credentials are rejected when the client is constructed.
"""

import asyncio
import json
import logging
import threading
import time
from typing import Any, Dict, List, Optional, Tuple

import aiohttp
import httpx
import openai
import google.generativeai as genai

from ..core.config import Config, SUPPORTED_PROVIDERS
from ..core.errors import ConfigurationError, ProviderCallError
from ..core.metrics import ProviderResponse, UsageSnapshot
from ..utils.rate_limiter import ProviderRateLimits

logger = logging.getLogger(__name__)

Message = Dict[str, str]

# Expected key prefix per provider; keys that do not match are rejected at construction
CREDENTIAL_PREFIXES = {
    "openai": "sk-",
    "anthropic": "sk-ant-",
    "google": "AIza",
}
MIN_CREDENTIAL_LENGTH = 20

DEFAULT_MAX_TOKENS = 2000


def validate_credential(provider: str, key: Optional[str], enforce_prefix: bool = True) -> bool:
    """Return True when a credential is present, False when absent.

    Raises ConfigurationError for a present but obviously malformed key.
    """
    if key is None or not key.strip():
        return False
    if key != key.strip() or any(ch.isspace() for ch in key):
        raise ConfigurationError("API key contains whitespace", provider=provider)
    if len(key) < MIN_CREDENTIAL_LENGTH:
        raise ConfigurationError(f"API key is too short ({len(key)} chars)", provider=provider)
    prefix = CREDENTIAL_PREFIXES.get(provider)
    if enforce_prefix and prefix and not key.startswith(prefix):
        raise ConfigurationError(f"Invalid {provider} API key format (expected prefix '{prefix}')",
                                 provider=provider)
    return True


class UsageAccumulator:
    """Running usage counters shared by every call of one client"""

    def __init__(self):
        self._lock = threading.Lock()
        self._requests = 0
        self._tokens = 0
        self._duration_ms = 0.0
        self._errors = 0

    def record(self, duration_ms: float, tokens: int = 0, error: bool = False):
        with self._lock:
            self._requests += 1
            self._tokens += tokens
            self._duration_ms += duration_ms
            if error:
                self._errors += 1

    def snapshot(self) -> UsageSnapshot:
        with self._lock:
            return UsageSnapshot(
                total_requests=self._requests,
                total_tokens=self._tokens,
                total_duration_ms=self._duration_ms,
                errors=self._errors,
            )

    def reset(self):
        with self._lock:
            self._requests = 0
            self._tokens = 0
            self._duration_ms = 0.0
            self._errors = 0


class ProviderTransport:
    """Sends one chat-style request to a provider and returns ``(text, tokens)``.

    Implementations raise ``ProviderCallError`` for every expected failure.
    """

    name = "base"
    # Transports that fabricate content (test doubles, replays) must set this
    simulated = False

    async def complete(self, messages: List[Message], model: str, max_tokens: int,
                       temperature: float) -> Tuple[str, int]:
        raise NotImplementedError

    async def aclose(self):
        return None


def _classify_status(provider: str, status: int, message: str) -> ProviderCallError:
    if status in (401, 403):
        return ProviderCallError(provider, "AUTH_FAILED", f"HTTP {status}: {message}")
    if status == 429:
        return ProviderCallError(provider, "RATE_LIMIT", f"HTTP {status}: {message}", should_retry=True)
    if status >= 500:
        return ProviderCallError(provider, "SERVER_ERROR", f"HTTP {status}: {message}", should_retry=True)
    return ProviderCallError(provider, "HTTP_ERROR", f"HTTP {status}: {message}")


class OpenAITransport(ProviderTransport):
    """OpenAI chat completions through the official async SDK"""

    name = "openai"

    def __init__(self, api_key: str, base_url: Optional[str] = None, timeout: float = 120.0,
                 disable_proxy: bool = False):
        openai_kwargs: Dict[str, Any] = {"api_key": api_key, "timeout": timeout, "max_retries": 0}
        if base_url:
            openai_kwargs["base_url"] = base_url.rstrip("/")
            logger.info(f"🔗 OpenAI base URL configured: {base_url}")
        self._http_client: Optional[httpx.AsyncClient] = None
        if disable_proxy:
            self._http_client = httpx.AsyncClient(trust_env=False)
            openai_kwargs["http_client"] = self._http_client
            logger.info("🚫 Proxy usage disabled for OpenAI client")
        self.client = openai.AsyncOpenAI(**openai_kwargs)

    async def complete(self, messages, model, max_tokens, temperature):
        try:
            response = await self.client.chat.completions.create(
                model=model,
                messages=messages,
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except openai.APIStatusError as e:
            raise _classify_status(self.name, e.status_code, e.message) from e
        except openai.APITimeoutError as e:
            raise ProviderCallError(self.name, "TIMEOUT_ERROR", str(e), e, should_retry=True) from e
        except openai.APIConnectionError as e:
            raise ProviderCallError(self.name, "CONNECTION_ERROR", f"Network error: {e}", e, should_retry=True) from e
        except openai.OpenAIError as e:
            raise ProviderCallError(self.name, "INVALID_RESPONSE", str(e), e) from e

        if not response.choices:
            raise ProviderCallError(self.name, "INVALID_RESPONSE", "Response contained no choices")
        content = response.choices[0].message.content
        if content is None or not content.strip():
            raise ProviderCallError(self.name, "EMPTY_RESPONSE", "OpenAI returned empty content")
        tokens = response.usage.total_tokens if response.usage else 0
        return content, tokens

    async def aclose(self):
        await self.client.close()
        if self._http_client is not None:
            await self._http_client.aclose()


class AnthropicTransport(ProviderTransport):
    """Anthropic Messages API over raw HTTPS"""

    name = "anthropic"

    def __init__(self, api_key: str, base_url: str = "https://api.anthropic.com",
                 api_version: str = "2023-06-01", timeout: float = 120.0, disable_proxy: bool = False):
        self.api_key = api_key
        self.url = f"{base_url.rstrip('/')}/v1/messages"
        self.api_version = api_version
        self.timeout = timeout
        self.trust_env = not disable_proxy

    async def complete(self, messages, model, max_tokens, temperature):
        system_parts = [m["content"] for m in messages if m.get("role") == "system"]
        body: Dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [
                {"role": m["role"], "content": m["content"]}
                for m in messages if m.get("role") != "system"
            ],
        }
        if system_parts:
            body["system"] = "\n\n".join(system_parts)

        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": self.api_version,
            "Content-Type": "application/json",
        }

        try:
            async with aiohttp.ClientSession(trust_env=self.trust_env) as session:
                async with session.post(self.url, headers=headers, json=body,
                                        timeout=aiohttp.ClientTimeout(total=self.timeout)) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        raise _classify_status(self.name, response.status, _error_message(error_text))
                    try:
                        data = await response.json(content_type=None)
                    except ValueError as e:
                        raise ProviderCallError(self.name, "INVALID_RESPONSE", f"Body is not JSON: {e}", e) from e
        except aiohttp.ClientError as e:
            raise ProviderCallError(self.name, "CONNECTION_ERROR", f"Network error: {e}", e, should_retry=True) from e
        except asyncio.TimeoutError as e:
            raise ProviderCallError(self.name, "TIMEOUT_ERROR", "Request timed out", e, should_retry=True) from e

        try:
            content = "".join(block.get("text", "") for block in data["content"] if block.get("type") == "text")
        except (KeyError, TypeError, AttributeError) as e:
            raise ProviderCallError(self.name, "INVALID_RESPONSE", "Response has no content blocks", e) from e
        if not content.strip():
            raise ProviderCallError(self.name, "EMPTY_RESPONSE", "Anthropic returned empty content")

        usage = data.get("usage") or {}
        tokens = int(usage.get("input_tokens", 0) or 0) + int(usage.get("output_tokens", 0) or 0)
        return content, tokens


def _error_message(error_text: str) -> str:
    """Best-effort extraction of ``error.message`` from an error body"""
    try:
        data = json.loads(error_text)
    except ValueError:
        return error_text.strip() or "empty error body"
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if data.get("message"):
            return str(data["message"])
    return error_text.strip() or "empty error body"


class GoogleTransport(ProviderTransport):
    """Gemini through google-generativeai, executed in a worker thread"""

    name = "google"

    def __init__(self, api_key: str, timeout: float = 120.0):
        genai.configure(api_key=api_key)
        self.timeout = timeout

    async def complete(self, messages, model, max_tokens, temperature):
        model_name = model if model.startswith("models/") else f"models/{model}"
        system_parts = [m["content"] for m in messages if m.get("role") == "system"]
        prompt = "\n\n".join(system_parts + [m["content"] for m in messages if m.get("role") != "system"])

        generative_model = genai.GenerativeModel(
            model_name=model_name,
            generation_config=genai.types.GenerationConfig(
                temperature=temperature,
                max_output_tokens=max_tokens,
            ),
        )

        loop = asyncio.get_running_loop()
        try:
            response = await asyncio.wait_for(
                loop.run_in_executor(None, generative_model.generate_content, prompt),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise ProviderCallError(self.name, "TIMEOUT_ERROR", "Request timed out", e, should_retry=True) from e
        except Exception as e:
            # google-api-core raises a wide family of errors; classify by message
            message = str(e)
            retry = any(marker in message.lower() for marker in ("429", "503", "unavailable", "deadline", "rate"))
            raise ProviderCallError(self.name, "API_ERROR", message or type(e).__name__, e, should_retry=retry) from e

        try:
            content = response.text
        except (ValueError, AttributeError) as e:
            # Raised when the candidate was blocked or empty
            raise ProviderCallError(self.name, "INVALID_RESPONSE", f"No text in response: {e}", e) from e
        if not content or not content.strip():
            raise ProviderCallError(self.name, "EMPTY_RESPONSE", "Gemini returned empty content")

        usage = getattr(response, "usage_metadata", None)
        tokens = int(getattr(usage, "total_token_count", 0) or 0) if usage is not None else 0
        return content, tokens


class ProviderClient:
    """Uniform request/response wrapper around the configured providers"""

    def __init__(self, config: Config, transports: Optional[Dict[str, ProviderTransport]] = None):
        self.config = config
        self.usage = UsageAccumulator()
        self.rate_limits = ProviderRateLimits(config.api.max_requests_per_minute,
                                              config.api.max_concurrent_requests)

        api = config.api
        credentials = {
            "openai": api.openai_api_key,
            "anthropic": api.anthropic_api_key,
            "google": api.google_api_key,
        }
        self.credentialed: Dict[str, bool] = {}
        for provider, key in credentials.items():
            # OpenAI-compatible gateways issue keys in their own format
            enforce_prefix = not (provider == "openai" and api.openai_base_url)
            self.credentialed[provider] = validate_credential(provider, key, enforce_prefix=enforce_prefix)

        self.transports: Dict[str, ProviderTransport] = {}
        if transports is not None:
            self.transports.update(transports)
        else:
            self._setup_transports(credentials)

        for provider in SUPPORTED_PROVIDERS:
            if provider not in self.transports:
                logger.warning(f"⚠️ No credentials for {provider}: provider marked unavailable")

        logger.info(f"✅ Provider client initialized (available: {', '.join(self.available_providers()) or 'none'})")

    def _setup_transports(self, credentials: Dict[str, Optional[str]]):
        api = self.config.api
        if self.credentialed["openai"]:
            self.transports["openai"] = OpenAITransport(
                credentials["openai"], base_url=api.openai_base_url,
                timeout=api.request_timeout, disable_proxy=api.disable_proxy,
            )
        if self.credentialed["anthropic"]:
            self.transports["anthropic"] = AnthropicTransport(
                credentials["anthropic"], base_url=api.anthropic_base_url, api_version=api.anthropic_version,
                timeout=api.request_timeout, disable_proxy=api.disable_proxy,
            )
        if self.credentialed["google"]:
            self.transports["google"] = GoogleTransport(credentials["google"], timeout=api.request_timeout)

    def available_providers(self) -> List[str]:
        return list(self.transports.keys())

    def is_available(self, provider: str) -> bool:
        return provider in self.transports

    def is_simulated(self, provider: str) -> bool:
        transport = self.transports.get(provider)
        return transport is None or transport.simulated

    def has_real_credentials(self, provider: str) -> bool:
        return self.credentialed.get(provider, False)

    def default_model(self, provider: str) -> str:
        return {
            "openai": self.config.api.default_model_openai,
            "anthropic": self.config.api.default_model_anthropic,
            "google": self.config.api.default_model_google,
        }.get(provider, "unknown")

    async def call(self, provider: str, messages: List[Message], model: Optional[str] = None,
                   max_tokens: Optional[int] = None, temperature: Optional[float] = None) -> ProviderResponse:
        """Send one request; failures come back as ``success=False``"""
        model = model or self.default_model(provider)
        transport = self.transports.get(provider)
        if transport is None:
            logger.warning(f"⚠️ Call to unavailable provider '{provider}' skipped")
            return ProviderResponse.fail(f"Provider '{provider}' is not available", duration_ms=0.0,
                                         provider=provider, model=model)

        max_tokens = max_tokens or DEFAULT_MAX_TOKENS
        temperature = self.config.api.temperature if temperature is None else temperature

        logger.info(f"🤖 {provider} call, model: {model}, max_tokens: {max_tokens}")
        start = time.perf_counter()
        attempts = max(1, self.config.api.max_retries + 1)
        last_error: Optional[ProviderCallError] = None

        for attempt in range(attempts):
            try:
                async with self.rate_limits.acquire(provider):
                    content, tokens = await transport.complete(messages, model, max_tokens, temperature)
            except ProviderCallError as e:
                last_error = e
                if e.should_retry and attempt < attempts - 1:
                    delay = min(1.0 * (2 ** attempt), 30.0)
                    logger.warning(f"🔄 {e} - retrying in {delay:.1f}s ({attempt + 1}/{attempts - 1})")
                    await asyncio.sleep(delay)
                    continue
                break
            else:
                duration_ms = (time.perf_counter() - start) * 1000
                self.usage.record(duration_ms, tokens=tokens)
                logger.info(f"📤 {provider} responded: {len(content)} chars, {tokens} tokens, {duration_ms:.0f}ms")
                return ProviderResponse.ok(content, duration_ms=duration_ms, tokens_used=tokens,
                                           provider=provider, model=model)

        duration_ms = (time.perf_counter() - start) * 1000
        self.usage.record(duration_ms, error=True)
        error = last_error.message if last_error else "Unknown provider error"
        logger.error(f"❌ {provider} call failed: {last_error}")
        return ProviderResponse.fail(error, duration_ms=duration_ms, provider=provider, model=model)

    def get_metrics(self) -> UsageSnapshot:
        return self.usage.snapshot()

    def reset(self):
        self.usage.reset()

    async def aclose(self):
        for transport in self.transports.values():
            await transport.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
