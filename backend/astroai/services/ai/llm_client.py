"""
Async client for an OpenAI-compatible completion/embedding API.

- Uses httpx against the HTTP API directly (no vendor SDK)
- Every call is protected by a circuit breaker and bounded by a timeout
- Failures are mapped onto the error taxonomy; raw upstream payloads are
  never copied into errors or logs

Callers (response synthesizer, content generator, chat streamer, embedding
provider) treat every error from this client as a signal to fall back.
"""
import json
import time
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from astroai.core.circuit_breaker import CircuitBreaker, CircuitBreakerOpenError
from astroai.core.errors import AuthError, UnknownError, classify_error
from astroai.core.logging import get_logger
from astroai.core.metrics import record_llm_error, record_llm_request, record_llm_tokens
from astroai.core.tracing import start_span
from astroai.models.chat import ChatMessage, UserProfile

logger = get_logger(__name__)

BASE_SYSTEM_PROMPT = """You are AstroAI, an intelligent assistant for AstroIntelligence, a leading cloud engineering and AI consulting company.

COMPANY OVERVIEW:
- Specializes in cloud architecture, AI/ML solutions, and digital transformation
- Serves startups to enterprise clients across various industries
- Focus on ethical AI, scalable cloud solutions, and cutting-edge technology

YOUR ROLE:
- Help users understand our services and capabilities
- Provide technical insights and recommendations
- Guide users toward appropriate solutions for their needs
- Be knowledgeable, professional, and helpful

SERVICES:
1. **AI & ML Consulting**: Strategy, implementation, ethical AI practices
2. **Cloud Architecture**: AWS, Azure, GCP design and migration
3. **Platform Engineering**: DevOps, infrastructure automation, monitoring
4. **Data Engineering**: Pipelines, analytics, real-time processing
5. **Digital Transformation**: Modernization, process optimization

COMMUNICATION STYLE:
- Professional yet approachable
- Technical when appropriate, accessible when needed
- Solution-focused and action-oriented
- Honest about capabilities and limitations"""


def build_system_prompt(
    profile: Optional[UserProfile],
    session_context: Optional[Dict[str, str]] = None,
) -> str:
    """Base prompt plus user-context and session-context blocks."""
    prompt = BASE_SYSTEM_PROMPT
    if profile is not None:
        prompt += _profile_block(profile)
    if session_context:
        prompt += _session_block(session_context)
    return prompt


def _profile_block(profile: UserProfile) -> str:
    lines = ["", "", "USER CONTEXT:"]
    lines.append(f"- Company Size: {profile.company_size}")
    if profile.industry:
        lines.append(f"- Industry: {profile.industry}")
    if profile.challenges:
        lines.append(f"- Current Challenges: {', '.join(profile.challenges)}")
    if profile.tech_stack:
        lines.append(f"- Technology Stack: {', '.join(profile.tech_stack)}")
    if profile.interests:
        lines.append(f"- Interests: {', '.join(profile.interests)}")
    lines.append("")
    lines.append("Tailor your responses to this context when relevant.")
    return "\n".join(lines)


def _session_block(session_context: Dict[str, str]) -> str:
    lines = ["", "", "SESSION CONTEXT:"]
    if session_context.get("page"):
        lines.append(f"- Current Page: {session_context['page']}")
    if session_context.get("user_intent"):
        lines.append(f"- User Intent: {session_context['user_intent']}")
    if len(lines) == 3:
        return ""
    return "\n".join(lines)


STREAM_DONE_LINE = "data: [DONE]"


def parse_stream_line(line: str) -> Optional[str]:
    """Text delta from one server-sent event line, or None for anything else."""
    if not line.startswith("data:"):
        return None
    body = line[len("data:"):].strip()
    if not body or body == "[DONE]":
        return None
    try:
        chunk = json.loads(body)
        return chunk["choices"][0]["delta"].get("content") or None
    except (ValueError, KeyError, IndexError, TypeError, AttributeError):
        return None


class LLMClient:
    """Async HTTP client for chat completions and embeddings."""

    def __init__(
        self,
        api_base: str,
        api_key: Optional[str],
        chat_model: str = "gpt-4o-mini",
        embedding_model: str = "text-embedding-3-small",
        timeout_seconds: float = 30.0,
        max_tokens: int = 500,
        temperature: float = 0.7,
        circuit_breaker: Optional[CircuitBreaker] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_base = api_base.rstrip("/")
        self.api_key = api_key
        self.chat_model = chat_model
        self.embedding_model = embedding_model
        self.timeout_seconds = timeout_seconds
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            name="llm",
            failure_threshold=0.5,
            time_window_seconds=60,
            open_duration_seconds=30,
        )
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    async def _post(self, path: str, json_payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST helper; raises httpx errors for non-2xx responses."""
        url = f"{self.api_base}{path}"
        async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
            response = await client.post(url, headers=self._headers(), json=json_payload)
            response.raise_for_status()
            return response.json()

    async def _call(self, operation: str, model: str, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        if not self.api_key:
            record_llm_error(operation, "missing_api_key")
            raise AuthError("The AI provider is not configured.", metadata={"reason": "missing_api_key"})

        start = time.time()
        with start_span(f"llm.{operation}", **{"llm.model": model}):
            try:
                return await self.circuit_breaker.call_async(self._post, path, payload)
            except CircuitBreakerOpenError:
                record_llm_error(operation, "circuit_open")
                logger.warning("llm_circuit_open", operation=operation)
                raise
            except Exception as exc:
                error = classify_error(exc)
                record_llm_error(operation, error.kind.value)
                logger.warning(
                    "llm_request_failed",
                    operation=operation,
                    error_kind=error.kind.value,
                    error_type=type(exc).__name__,
                    retryable=error.retryable,
                )
                if error is exc:
                    raise
                raise error from exc
            finally:
                record_llm_request(operation, model, time.time() - start)

    def _chat_payload(
        self,
        system_prompt: str,
        messages: List[Dict[str, str]],
        max_tokens: Optional[int] = None,
    ) -> Dict[str, Any]:
        return {
            "model": self.chat_model,
            "messages": [{"role": "system", "content": system_prompt}] + messages,
            "temperature": self.temperature,
            "max_tokens": max_tokens or self.max_tokens,
        }

    async def _completion_text(self, payload: Dict[str, Any]) -> str:
        data = await self._call("complete", self.chat_model, "/chat/completions", payload)

        usage = data.get("usage") or {}
        record_llm_tokens(
            "complete",
            int(usage.get("prompt_tokens") or 0),
            int(usage.get("completion_tokens") or 0),
        )

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            raise UnknownError(metadata={"reason": "malformed_completion"})
        if not content or not content.strip():
            raise UnknownError(metadata={"reason": "empty_completion"})
        return content.strip()

    async def complete(self, messages: List[ChatMessage], profile: Optional[UserProfile] = None) -> str:
        """
        Generate an assistant reply for the conversation.

        Args:
            messages: Conversation so far (user and assistant messages)
            profile: Inferred visitor profile, used for the system prompt

        Returns:
            Reply text

        Raises:
            AIError subclasses (Auth when unconfigured, Network/RateLimit for
            transient failures, Unknown otherwise)
        """
        payload = self._chat_payload(
            build_system_prompt(profile),
            [{"role": m.role, "content": m.content} for m in messages],
        )
        return await self._completion_text(payload)

    async def complete_prompt(self, system_prompt: str, prompt: str, max_tokens: Optional[int] = None) -> str:
        """Single-shot completion with a caller-supplied system prompt."""
        payload = self._chat_payload(system_prompt, [{"role": "user", "content": prompt}], max_tokens)
        return await self._completion_text(payload)

    async def stream_complete(
        self,
        messages: List[ChatMessage],
        profile: Optional[UserProfile] = None,
        session_context: Optional[Dict[str, str]] = None,
    ) -> AsyncIterator[str]:
        """
        Stream the assistant reply as text deltas.

        The circuit breaker guards the whole read. A stream that ends without
        any text raises UnknownError; other failures are mapped like `complete`.
        """
        if not self.api_key:
            record_llm_error("stream", "missing_api_key")
            raise AuthError("The AI provider is not configured.", metadata={"reason": "missing_api_key"})

        payload = self._chat_payload(
            build_system_prompt(profile, session_context),
            [{"role": m.role, "content": m.content} for m in messages],
        )
        payload["stream"] = True

        start = time.time()
        produced = False
        try:
            async with self.circuit_breaker.protect():
                async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                    async with client.stream(
                        "POST",
                        f"{self.api_base}/chat/completions",
                        headers=self._headers(),
                        json=payload,
                    ) as response:
                        response.raise_for_status()
                        async for line in response.aiter_lines():
                            if line.strip() == STREAM_DONE_LINE:
                                break
                            delta = parse_stream_line(line)
                            if delta:
                                produced = True
                                yield delta
                if not produced:
                    raise UnknownError(metadata={"reason": "empty_completion"})
        except CircuitBreakerOpenError:
            record_llm_error("stream", "circuit_open")
            logger.warning("llm_circuit_open", operation="stream")
            raise
        except Exception as exc:
            error = classify_error(exc)
            record_llm_error("stream", error.kind.value)
            logger.warning(
                "llm_request_failed",
                operation="stream",
                error_kind=error.kind.value,
                error_type=type(exc).__name__,
                retryable=error.retryable,
            )
            if error is exc:
                raise
            raise error from exc
        finally:
            record_llm_request("stream", self.chat_model, time.time() - start)


    async def embed_many(self, texts: List[str]) -> List[List[float]]:
        """Embed a batch of texts, preserving input order."""
        if not texts:
            return []
        payload = {"model": self.embedding_model, "input": texts}
        data = await self._call("embed", self.embedding_model, "/embeddings", payload)

        usage = data.get("usage") or {}
        record_llm_tokens("embed", int(usage.get("prompt_tokens") or 0), 0)

        try:
            items = sorted(data["data"], key=lambda item: item.get("index", 0))
            vectors = [list(item["embedding"]) for item in items]
        except (KeyError, TypeError):
            raise UnknownError(metadata={"reason": "malformed_embedding"})
        if len(vectors) != len(texts):
            raise UnknownError(metadata={"reason": "embedding_count_mismatch"})
        return vectors

    async def embed(self, text: str) -> List[float]:
        vectors = await self.embed_many([text])
        return vectors[0]
