"""Backend communication for OpenAI-compatible APIs and Ollama.

Chat completions produce the answers; embeddings feed the semantic half of
retrieval. Both backends are plain HTTP calls through ``requests``.
"""

from typing import Dict, List, Tuple

import requests


def _openai_headers(config) -> Dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if config.OPENAI_API_KEY:
        headers["Authorization"] = f"Bearer {config.OPENAI_API_KEY}"
    return headers


def _timeout(config) -> Tuple[int, int]:
    # (connect_timeout, read_timeout)
    return (config.BACKEND_CONNECT_TIMEOUT, config.BACKEND_READ_TIMEOUT)


def call_openai_chat(messages: List[Dict], config, temperature: float = 0.0):
    """Call an OpenAI-compatible chat completions endpoint."""
    endpoint = f"{config.OPENAI_ENDPOINT}/chat/completions"

    payload = {
        "model": config.CHAT_MODEL,
        "messages": messages,
        "temperature": temperature,
        "stream": False,
    }

    response = requests.post(endpoint, json=payload, headers=_openai_headers(config), timeout=_timeout(config))
    response.raise_for_status()
    return response


def call_ollama_chat(messages: List[Dict], config, temperature: float = 0.0):
    """Call Ollama's chat endpoint."""
    endpoint = f"{config.OLLAMA_ENDPOINT}/api/chat"

    payload = {
        "model": config.CHAT_MODEL,
        "messages": messages,
        "stream": False,
        "options": {"temperature": temperature},
    }

    response = requests.post(endpoint, json=payload, timeout=_timeout(config))
    response.raise_for_status()
    return response


def call_chat(messages: List[Dict], config, temperature: float = 0.0) -> str:
    """Send messages to the configured backend and return the answer text."""
    if config.BACKEND_TYPE == "ollama":
        data = call_ollama_chat(messages, config, temperature).json()
        return data.get("message", {}).get("content", "")

    data = call_openai_chat(messages, config, temperature).json()
    choice = (data.get("choices") or [{}])[0]
    return choice.get("message", {}).get("content") or ""


def call_openai_embeddings(texts: List[str], config) -> List[List[float]]:
    """Embed texts with an OpenAI-compatible ``/embeddings`` endpoint.

    Returns:
        One vector per input text, in input order
    """
    endpoint = f"{config.OPENAI_ENDPOINT}/embeddings"
    payload = {"model": config.EMBEDDING_MODEL, "input": texts}

    response = requests.post(endpoint, json=payload, headers=_openai_headers(config), timeout=_timeout(config))
    response.raise_for_status()

    # Items carry their input position; don't rely on response order
    items = sorted(response.json().get("data", []), key=lambda item: item.get("index", 0))
    return [item["embedding"] for item in items]


def call_ollama_embeddings(texts: List[str], config) -> List[List[float]]:
    """Embed texts with Ollama's ``/api/embed`` endpoint.

    Returns:
        One vector per input text, in input order
    """
    endpoint = f"{config.OLLAMA_ENDPOINT}/api/embed"
    payload = {"model": config.EMBEDDING_MODEL, "input": texts}

    response = requests.post(endpoint, json=payload, timeout=_timeout(config))
    response.raise_for_status()
    return response.json().get("embeddings", [])


def call_embeddings(texts: List[str], config) -> List[List[float]]:
    """Embed texts with the configured backend."""
    if config.BACKEND_TYPE == "ollama":
        return call_ollama_embeddings(texts, config)
    return call_openai_embeddings(texts, config)


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

        data = response.json()
        models = data.get("models", [])
        model_names = [model.get("name", "") for model in models]

        missing = [m for m in (config.CHAT_MODEL, config.EMBEDDING_MODEL) if m not in model_names]
        if not missing:
            return True, f"Ollama is healthy. Models '{config.CHAT_MODEL}' and '{config.EMBEDDING_MODEL}' are available."
        available = ", ".join(model_names) if model_names else "none"
        return (
            False,
            f"Ollama is reachable but model(s) {', '.join(missing)} not found. Available models: {available}",
        )

    except requests.Timeout:
        return False, f"Ollama health check timed out after {timeout}s. Backend may be unresponsive."
    except requests.ConnectionError:
        return False, f"Cannot connect to Ollama at {config.OLLAMA_ENDPOINT}. Is it running?"
    except Exception as e:
        return False, f"Ollama health check failed: {e!s}"


def check_openai_health(config, timeout: int = 5) -> Tuple[bool, str]:
    """Check if the OpenAI-compatible backend is healthy and reachable.

    Args:
        config: ServerConfig instance
        timeout: Request timeout in seconds

    Returns:
        Tuple of (is_healthy: bool, message: str)
    """
    try:
        endpoint = f"{config.OPENAI_ENDPOINT}/models"
        response = requests.get(endpoint, headers=_openai_headers(config), timeout=timeout)
        response.raise_for_status()

        data = response.json()
        models = data.get("data", [])

        if models:
            return True, f"Backend at {config.OPENAI_ENDPOINT} is healthy. {len(models)} model(s) available."
        return False, f"Backend at {config.OPENAI_ENDPOINT} is reachable but lists no models."

    except requests.Timeout:
        return False, f"Backend health check timed out after {timeout}s. Backend may be unresponsive."
    except requests.ConnectionError:
        return False, f"Cannot connect to backend at {config.OPENAI_ENDPOINT}. Is it running?"
    except Exception as e:
        return False, f"Backend health check failed: {e!s}"
