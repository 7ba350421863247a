"""Backend communication for OpenAI-compatible servers and Ollama."""

import logging
import time
from typing import Any, Callable, Dict, List, Tuple

import requests

logger = logging.getLogger(__name__)


def _auth_headers(config) -> Dict[str, str]:
    """Bearer authorization header when an API key is configured."""
    if config.OPENAI_API_KEY:
        return {"Authorization": f"Bearer {config.OPENAI_API_KEY}"}
    return {}


def post_with_retry(send: Callable[[], requests.Response], config) -> requests.Response:
    """Send a request, retrying connection errors with exponential backoff.

    Timeouts and HTTP error statuses are not retried.

    Args:
        send: Zero-argument callable performing the request
        config: ServerConfig instance with retry settings

    Returns:
        Successful response
    """
    attempts = max(1, config.BACKEND_RETRY_ATTEMPTS)
    delay = config.BACKEND_RETRY_INITIAL_DELAY
    for attempt in range(1, attempts + 1):
        try:
            response = send()
            response.raise_for_status()
            return response
        except requests.ConnectionError:
            if attempt == attempts:
                raise
            logger.warning(f"[BACKEND] Connection failed (attempt {attempt}/{attempts}), retrying in {delay:.1f}s")
            time.sleep(delay)
            delay *= 2
    raise AssertionError("unreachable")


def _json_object(response: requests.Response) -> Dict[str, Any]:
    """Decode a response body that must be a JSON object."""
    data = response.json()
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data


def _message_text(message: Dict[str, Any]) -> str:
    content = message.get("content") or ""
    if not isinstance(content, str):
        raise ValueError(f"message content is a {type(content).__name__}, expected text")
    return content


def call_openai_chat(messages: List[Dict], model: str, config, temperature: float = 0.0) -> str:
    """Call an OpenAI-compatible chat completions endpoint and return the message text."""
    endpoint = f"{config.OPENAI_ENDPOINT.rstrip('/')}/chat/completions"
    payload = {"model": model, "messages": messages, "temperature": temperature, "stream": False}

    # Set timeout as tuple (connect_timeout, read_timeout)
    timeout = (config.BACKEND_CONNECT_TIMEOUT, config.BACKEND_READ_TIMEOUT)

    response = post_with_retry(
        lambda: requests.post(endpoint, json=payload, headers=_auth_headers(config), timeout=timeout), config
    )
    choices = _json_object(response).get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        raise ValueError("response has no choices")
    message = choices[0].get("message")
    if not isinstance(message, dict):
        raise ValueError("response choice has no message")
    return _message_text(message)


def call_ollama_chat(messages: List[Dict], model: str, config, temperature: float = 0.0) -> str:
    """Call Ollama's chat endpoint and return the message text."""
    endpoint = f"{config.OLLAMA_ENDPOINT.rstrip('/')}/api/chat"
    payload = {
        "model": model,
        "messages": messages,
        "stream": False,
        "options": {"temperature": temperature},
    }

    timeout = (config.BACKEND_CONNECT_TIMEOUT, config.BACKEND_READ_TIMEOUT)

    response = post_with_retry(lambda: requests.post(endpoint, json=payload, timeout=timeout), config)
    message = _json_object(response).get("message")
    if not isinstance(message, dict):
        raise ValueError("response has no message")
    return _message_text(message)


def call_openai_embeddings(texts: List[str], model: str, config) -> List[List[float]]:
    """Embed a batch of texts with an OpenAI-compatible embeddings endpoint."""
    endpoint = f"{config.OPENAI_ENDPOINT.rstrip('/')}/embeddings"
    payload = {"model": model, "input": texts}

    timeout = (config.BACKEND_CONNECT_TIMEOUT, config.BACKEND_READ_TIMEOUT)

    response = post_with_retry(
        lambda: requests.post(endpoint, json=payload, headers=_auth_headers(config), timeout=timeout), config
    )
    data = _json_object(response).get("data")
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        raise ValueError("response has no embedding data")
    # Entries carry their input index; order by it rather than trusting response order
    data = sorted(data, key=lambda item: item.get("index", 0))
    return [item["embedding"] for item in data]


def call_ollama_embeddings(texts: List[str], model: str, config) -> List[List[float]]:
    """Embed a batch of texts with Ollama's embed endpoint."""
    endpoint = f"{config.OLLAMA_ENDPOINT.rstrip('/')}/api/embed"
    payload = {"model": model, "input": texts}

    timeout = (config.BACKEND_CONNECT_TIMEOUT, config.BACKEND_READ_TIMEOUT)

    response = post_with_retry(lambda: requests.post(endpoint, json=payload, timeout=timeout), config)
    embeddings = _json_object(response).get("embeddings")
    if not isinstance(embeddings, list):
        raise ValueError("response has no embeddings")
    return embeddings


def check_ollama_health(config, timeout: int = 5) -> Tuple[bool, str]:
    """Check if Ollama backend is healthy and reachable.

    Args:
        config: ServerConfig instance
        timeout: Request timeout in seconds

    Returns:
        Tuple of (is_healthy: bool, message: str)
    """
    try:
        endpoint = f"{config.OLLAMA_ENDPOINT}/api/tags"
        response = requests.get(endpoint, timeout=timeout)
        response.raise_for_status()

        # Check if the configured model is available
        data = response.json()
        models = data.get("models", [])
        model_names = [model.get("name", "") for model in models]

        if config.BACKEND_MODEL in model_names:
            return True, f"Ollama is healthy. Model '{config.BACKEND_MODEL}' is available."
        else:
            available = ", ".join(model_names) if model_names else "none"
            return (
                False,
                f"Ollama is reachable but model '{config.BACKEND_MODEL}' not found. Available models: {available}",
            )

    except requests.Timeout:
        return False, f"Ollama health check timed out after {timeout}s. Backend may be unresponsive."
    except requests.ConnectionError:
        return False, f"Cannot connect to Ollama at {config.OLLAMA_ENDPOINT}. Is it running?"
    except Exception as e:
        return False, f"Ollama health check failed: {e!s}"


def check_openai_health(config, timeout: int = 5) -> Tuple[bool, str]:
    """Check if an OpenAI-compatible backend is healthy and reachable.

    Args:
        config: ServerConfig instance
        timeout: Request timeout in seconds

    Returns:
        Tuple of (is_healthy: bool, message: str)
    """
    try:
        endpoint = f"{config.OPENAI_ENDPOINT.rstrip('/')}/models"
        response = requests.get(endpoint, headers=_auth_headers(config), timeout=timeout)
        response.raise_for_status()

        models = response.json().get("data", [])
        if models:
            return True, f"Backend at {config.OPENAI_ENDPOINT} is healthy. {len(models)} model(s) available."
        else:
            return False, f"Backend at {config.OPENAI_ENDPOINT} is reachable but lists no models."

    except requests.Timeout:
        return False, f"Backend health check timed out after {timeout}s. Backend may be unresponsive."
    except requests.ConnectionError:
        return False, f"Cannot connect to backend at {config.OPENAI_ENDPOINT}. Is it running?"
    except Exception as e:
        return False, f"Backend health check failed: {e!s}"
