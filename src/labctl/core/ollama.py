"""Ollama inference server REST API client."""

from concurrent.futures import ThreadPoolExecutor, as_completed

import httpx

from labctl.utils.polling import wait_for

OLLAMA_PORT = 11434
DEFAULT_MODELS = ("llama2", "codellama")


class OllamaClient:
    """Client for the model-listing and model-pull endpoints."""

    def __init__(self, host: str = "localhost", port: int = OLLAMA_PORT) -> None:
        """Initialize with optional host/port override."""
        self.base_url = f"http://{host}:{port}"

    def is_running(self) -> bool:
        """Check if the server answers."""
        try:
            resp = httpx.get(f"{self.base_url}/api/tags", timeout=2)
            return resp.status_code == 200
        except httpx.RequestError:
            return False

    def wait_ready(self, timeout: float = 60.0, interval: float = 2.0) -> None:
        """Block until the server answers; ReadinessTimeout otherwise."""
        wait_for(self.is_running, timeout=timeout, interval=interval, what=f"Ollama at {self.base_url}")

    def list_models(self) -> list[str]:
        """Get names of locally available models."""
        resp = httpx.get(f"{self.base_url}/api/tags", timeout=5)
        resp.raise_for_status()
        return [m["name"] for m in resp.json().get("models", [])]

    def pull_model(self, name: str) -> str:
        """Download a model; returns the final status reported by the server."""
        # Pulls of multi-GB models can take a long time
        resp = httpx.post(
            f"{self.base_url}/api/pull",
            json={"name": name, "stream": False},
            timeout=httpx.Timeout(10.0, read=None),
        )
        resp.raise_for_status()
        return resp.json().get("status", "unknown")

    def pull_models(self, names: list[str]) -> dict[str, str | Exception]:
        """Pull several models in the background and wait for all of them.

        Returns a mapping of model name to final status, or the exception
        that pull raised. The pulls share no state, so completion order is
        irrelevant.
        """
        results: dict[str, str | Exception] = {}
        if not names:
            return results

        with ThreadPoolExecutor(max_workers=len(names)) as executor:
            futures = {executor.submit(self.pull_model, name): name for name in names}
            for future in as_completed(futures):
                name = futures[future]
                try:
                    results[name] = future.result()
                except (httpx.HTTPError, ValueError) as e:
                    results[name] = e
        return results
