import json

import requests
from loguru import logger

from config import Config
from services.errors import UpstreamGenerationError


class OllamaClient:
    """Text generation against Ollama's /api/generate endpoint.

    Every transport problem surfaces as UpstreamGenerationError so callers
    can tell "assistant offline" apart from a storage failure.
    """

    def __init__(self, base_url=None, model=None, timeout=None, options=None):
        self.base_url = (base_url or Config.OLLAMA_BASE_URL).rstrip("/")
        self.model = model or Config.OLLAMA_MODEL
        self.timeout = timeout or Config.OLLAMA_TIMEOUT
        self.options = options or {
            "temperature": Config.OLLAMA_TEMPERATURE,
            "top_p": Config.OLLAMA_TOP_P,
        }

    def _payload(self, prompt, system, stream):
        payload = {
            "model": self.model,
            "prompt": prompt,
            "stream": stream,
            "options": self.options,
        }
        if system:
            payload["system"] = system
        return payload

    def stream_generate(self, prompt, system=None):
        """Generator that yields text fragments in the order Ollama sends them.

        Ends on the first ``done`` marker or when the body ends, whichever
        comes first. The HTTP response is closed on every exit path,
        including when the consumer closes this generator early.
        """
        response = None
        try:
            response = requests.post(
                f"{self.base_url}/api/generate",
                json=self._payload(prompt, system, stream=True),
                stream=True,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            if response is not None:
                response.close()
            raise UpstreamGenerationError(f"Generation service unreachable: {e}") from e

        try:
            for line in response.iter_lines():
                if not line:
                    continue
                try:
                    data = json.loads(line)
                except ValueError:
                    logger.warning("Skipping malformed stream line from Ollama")
                    continue
                if not isinstance(data, dict):
                    logger.warning("Skipping non-object stream record from Ollama")
                    continue
                if data.get("error"):
                    raise UpstreamGenerationError(f"Generation failed: {data['error']}")
                fragment = data.get("response", "")
                if fragment:
                    yield fragment
                if data.get("done", False):
                    break
        except requests.RequestException as e:
            raise UpstreamGenerationError(f"Generation stream broke: {e}") from e
        finally:
            response.close()

    def generate(self, prompt, system=None):
        """Non-streaming variant. Returns the complete response string."""
        try:
            response = requests.post(
                f"{self.base_url}/api/generate",
                json=self._payload(prompt, system, stream=False),
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            raise UpstreamGenerationError(f"Generation service unreachable: {e}") from e
        except ValueError as e:
            raise UpstreamGenerationError("Generation service returned invalid JSON") from e

        text = data.get("response")
        if not isinstance(text, str):
            raise UpstreamGenerationError("Generation service returned no text")
        return text

    def status(self):
        """Report whether the service answers; never raises."""
        try:
            response = requests.get(f"{self.base_url}/api/tags", timeout=10)
        except requests.RequestException as e:
            return {
                "status": "offline",
                "message": "AI service is not available",
                "details": {"error": str(e)},
            }

        if response.status_code != 200:
            return {
                "status": "error",
                "message": "AI service returned unexpected response",
                "details": {"statusCode": response.status_code},
            }

        try:
            data = response.json()
        except ValueError:
            data = {}
        return {
            "status": "online",
            "message": "AI service is available",
            "details": {
                "models": data.get("models", []),
                "version": data.get("version", "unknown"),
            },
        }
