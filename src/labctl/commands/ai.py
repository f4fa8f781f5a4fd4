"""AI service commands (Ollama models, manual-start web UIs)."""

import httpx
import typer

from labctl.core import systemd
from labctl.core.ollama import DEFAULT_MODELS, OllamaClient
from labctl.core.services import SERVICES, get_service
from labctl.errors import ReadinessTimeout
from labctl.utils.output import error, info, ok, section, warn

app = typer.Typer(
    name="ai",
    help="Local LLM server and AI web UIs",
    no_args_is_help=True,
)


@app.command()
def models() -> None:
    """List models available on the inference server."""
    client = OllamaClient()
    if not client.is_running():
        error(f"Ollama is not responding at {client.base_url}")
        raise typer.Exit(1)

    try:
        names = client.list_models()
    except httpx.HTTPError as e:
        error(f"Could not list models: {e}")
        raise typer.Exit(1) from None

    if not names:
        info("No models pulled yet (try: labctl ai pull)")
        return
    section("Available Models")
    for name in names:
        typer.echo(f"  - {name}")


@app.command()
def pull(
    names: list[str] = typer.Argument(None, help="Models to pull (default: llama2 codellama)"),
    wait: float = typer.Option(60.0, "--wait", help="Seconds to wait for Ollama to come up"),
) -> None:
    """Download models in parallel once the server is ready."""
    targets = list(names) if names else list(DEFAULT_MODELS)
    client = OllamaClient()

    info(f"Waiting for Ollama at {client.base_url}...")
    try:
        client.wait_ready(timeout=wait)
    except ReadinessTimeout as e:
        error(str(e))
        raise typer.Exit(1) from None

    section("Pulling Models")
    info(f"Pulling {', '.join(targets)}")
    results = client.pull_models(targets)

    failed = 0
    for name in targets:
        outcome = results.get(name)
        if isinstance(outcome, Exception) or outcome is None:
            error(f"{name}: {outcome}")
            failed += 1
        else:
            ok(f"{name}: {outcome}")
    if failed:
        raise typer.Exit(1)


@app.command()
def start(
    name: str = typer.Argument(..., help="Manual-start container to launch"),
) -> None:
    """Start a container that does not start on boot."""
    service = get_service(name)
    if service is None:
        manual = [s.name for s in SERVICES if not s.autostart]
        error(f"Unknown service '{name}'")
        info(f"Manual-start services: {', '.join(manual)}")
        raise typer.Exit(1)

    if service.autostart:
        warn(f"{name} starts automatically on boot")

    result = systemd.start(service.unit)
    if result.success:
        ok(f"Started {name}")
        if service.host_port:
            info(f"Listening on http://localhost:{service.host_port}")
    else:
        error(f"Failed to start {name}: {result.stderr.strip()}")
        raise typer.Exit(1)
