"""OpenAI-compatible LLM client wrapper with error handling."""
import httpx
from typing import List, Dict, Optional
import structlog

from cratedocs import config

logger = structlog.get_logger()


class OpenAIClient:
    """Async client for an OpenAI-compatible embeddings and chat API."""

    def __init__(
        self,
        api_key: str,
        base_url: str = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the provider client.

        Args:
            api_key: Bearer token sent with every request
            base_url: API base URL (defaults to config.OPENAI_API_BASE)
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used to stub the API in tests)
        """
        self.api_key = api_key
        self.base_url = (base_url or config.OPENAI_API_BASE).rstrip("/")
        self.timeout = timeout or config.PROVIDER_TIMEOUT
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers={"Authorization": f"Bearer {self.api_key}"},
            transport=self._transport,
        )

    async def chat(
        self,
        messages: List[Dict[str, str]],
        model: str = None,
        temperature: Optional[float] = None,
    ) -> Dict:
        """Send a chat completion request.

        Args:
            messages: List of message dicts with 'role' and 'content'
            model: Model to use (defaults to config.CHAT_MODEL)
            temperature: Sampling temperature (0.0-2.0)

        Returns:
            Response dict with 'choices[0].message.content'

        Raises:
            httpx.HTTPError: On API errors
            httpx.ConnectError: If the provider is unreachable
        """
        model = model or config.CHAT_MODEL

        payload = {
            "model": model,
            "messages": messages,
        }

        if temperature is not None:
            payload["temperature"] = temperature

        try:
            async with self._client() as client:
                logger.info(
                    "chat_request",
                    model=model,
                    message_count=len(messages),
                )

                response = await client.post("/chat/completions", json=payload)
                response.raise_for_status()

                data = response.json()

                logger.info(
                    "chat_response",
                    model=model,
                    response_length=len(message_content(data)),
                )

                return data

        except httpx.ConnectError as e:
            logger.error("provider_connection_error", error=str(e), base_url=self.base_url)
            raise
        except httpx.HTTPError as e:
            logger.error(
                "provider_http_error",
                error=str(e),
                status_code=getattr(getattr(e, "response", None), "status_code", None),
            )
            raise

    async def embeddings(
        self,
        texts: List[str],
        model: str = None,
    ) -> Dict:
        """Generate embeddings for a batch of texts.

        Args:
            texts: Texts to embed, one vector is returned per text
            model: Model to use (defaults to config.EMBEDDING_MODEL)

        Returns:
            Response dict with a 'data' list of {'index', 'embedding'}

        Raises:
            httpx.HTTPError: On API errors
        """
        model = model or config.EMBEDDING_MODEL

        payload = {
            "model": model,
            "input": texts,
        }

        try:
            async with self._client() as client:
                logger.debug(
                    "embedding_request",
                    model=model,
                    input_count=len(texts),
                )

                response = await client.post("/embeddings", json=payload)
                response.raise_for_status()

                data = response.json()

                logger.debug(
                    "embedding_response",
                    model=model,
                    vectors=len(data.get("data", [])),
                )

                return data

        except httpx.HTTPError as e:
            logger.error("embedding_error", error=str(e))
            raise

    async def list_models(self) -> List[str]:
        """List the model ids the provider exposes.

        Raises:
            httpx.HTTPError: On API errors
        """
        try:
            async with self._client() as client:
                response = await client.get("/models")
                response.raise_for_status()
                data = response.json()
                return [m["id"] for m in data.get("data", [])]
        except httpx.HTTPError as e:
            logger.error("list_models_error", error=str(e))
            raise


def message_content(response: Dict) -> str:
    """Pull the assistant text out of a chat completion response."""
    choices = response.get("choices") or []
    if not choices:
        return ""
    return (choices[0].get("message") or {}).get("content") or ""


def embedding_vectors(response: Dict, expected: int) -> List[List[float]]:
    """Return embedding vectors ordered by input position.

    Raises:
        RuntimeError: If the provider returned the wrong number of vectors
    """
    items = sorted(response.get("data", []), key=lambda item: item.get("index", 0))
    vectors = [item.get("embedding", []) for item in items]

    if len(vectors) != expected or any(not v for v in vectors):
        raise RuntimeError(
            f"Embedding response mismatch: expected {expected} vectors, got {len(vectors)}"
        )

    return vectors


def usage_tokens(response: Dict) -> int:
    """Tokens billed for a request, 0 when the provider reports no usage."""
    usage = response.get("usage") or {}
    return int(usage.get("total_tokens") or usage.get("prompt_tokens") or 0)
