import logging
import threading

import typer

from .core.client import OllamaClient
from .core.config import ensure_config, load_config
from .core.errors import OllamaError
from .core.exchange import Cancelled, Completed, Failed
from .core.message import M, emit, emit_stream_end, emit_stream_start, emit_stream_token
from .core.models import Message
from .core.validation import validate_message_text

logging.basicConfig(
    level=logging.WARNING,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)

app = typer.Typer(help="Talk to a local Ollama server.")

_base_url_override: str | None = None

EXIT_FAILED = 1
EXIT_CANCELLED = 130  # conventional SIGINT exit status


@app.callback()
def _global_options(
    base_url: str = typer.Option(
        "",
        "--base-url",
        "-u",
        help="Ollama server URL (default from ~/.olama/config.yaml or OLAMA_SERVER_BASE_URL)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    global _base_url_override
    _base_url_override = base_url or None
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


def _client() -> OllamaClient:
    return OllamaClient(base_url=_base_url_override, config=load_config())


@app.command()
def models() -> None:
    """List installed models, sorted by name."""
    with _client() as client:
        try:
            available = client.list_models()
        except OllamaError as exc:
            emit(M.AERR, f"{exc.kind.value}: {exc.detail}")
            raise typer.Exit(EXIT_FAILED) from exc
    if not available:
        emit(M.SINF, "No models installed")
        return
    for model in available:
        emit(M.MMDL, f"{model}  modified={model.modified_at}")


@app.command()
def ping() -> None:
    """Check whether the Ollama server is reachable."""
    with _client() as client:
        connected = client.check_connection()
        url = client.base_url
    if connected:
        emit(M.MCON, f"Connected to {url}")
        return
    emit(M.MCON, f"Ollama not reachable at {url}")
    raise typer.Exit(EXIT_FAILED)


@app.command()
def chat(
    model: str = typer.Argument(..., help="Model name, e.g. llama3:latest"),
    prompt: str = typer.Argument(..., help="Message to send"),
    system: str = typer.Option("", "--system", "-s", help="Optional system prompt"),
) -> None:
    """Send one message and stream the reply.  Ctrl-C cancels generation."""
    validation = validate_message_text(prompt)
    if not validation.is_valid:
        emit(M.SERR, validation.error_message or "Invalid message")
        raise typer.Exit(EXIT_FAILED)

    history: list[Message] = []
    if system.strip():
        history.append(Message.system(system))
    history.append(Message.user(prompt))

    streaming = threading.Event()

    def on_token(token: str) -> None:
        # Tokens arrive on one worker thread, so the line opens exactly once.
        if not streaming.is_set():
            streaming.set()
            emit_stream_start(M.ARSP, f"[{model}] ")
        emit_stream_token(token)

    with _client() as client:
        handle = client.send_message(model, history, on_token)
        try:
            result = handle.result()
        except KeyboardInterrupt:
            handle.cancel()
            result = handle.result()
        finally:
            if streaming.is_set():
                emit_stream_end()

    if isinstance(result, Completed):
        emit(M.CRES, f"Generated in {result.message.generation_duration_ms}ms")
    elif isinstance(result, Cancelled):
        emit(M.ACAN, "Generation cancelled")
        raise typer.Exit(EXIT_CANCELLED)
    elif isinstance(result, Failed):
        emit(M.AERR, result.detail)
        raise typer.Exit(EXIT_FAILED)


@app.command("init-config")
def init_config() -> None:
    """Write the default config file if it does not exist yet."""
    if ensure_config():
        emit(M.SCFG, "Wrote default config to ~/.olama/config.yaml")
    else:
        emit(M.SCFG, "Config already present, left unchanged")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
