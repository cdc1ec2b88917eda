"""CLI entry point for chatlens."""

import json
import logging

import click
import uvicorn

from . import __version__, config
from .analyzer import analyze_conversation_sync
from .backends import available_backends, get_backend
from .core import ConversationAnalysis, ParsedConversation
from .errors import BackendAuthError, ChatLensError
from .export import conversation_to_json, export_to_markdown, markdown_filename
from .parser import parse_conversation, require_messages
from .share import parse_share_html

logger = logging.getLogger(__name__)


def _fail(exc: ChatLensError, backend: str | None = None) -> click.ClickException:
    message = str(exc)
    if isinstance(exc, BackendAuthError) and backend:
        message += f" (set {config.api_key_env_var(backend)} or pass --api-key)"
    return click.ClickException(message)


def _write(text: str, output: str | None) -> None:
    if output:
        with open(output, "w", encoding="utf-8") as f:
            f.write(text)
        click.echo(f"Wrote {output}", err=True)
    else:
        click.echo(text)


@click.group()
@click.version_option(version=__version__, prog_name="chatlens")
@click.option(
    "--log-level",
    default=config.get_log_level,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging verbosity (default: $CHATLENS_LOG_LEVEL or WARNING).",
)
def main(log_level: str):
    """Parse chat transcripts and summarize them with an LLM."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


@main.command()
@click.argument("source", type=click.File("r", encoding="utf-8"))
@click.option("-o", "--output", type=click.Path(dir_okay=False), help="Write JSON here instead of stdout.")
def parse(source, output: str | None):
    """Parse a transcript or ChatGPT export (use - for stdin) into JSON."""
    conversation = parse_conversation(source.read())
    try:
        require_messages(conversation)
    except ChatLensError as e:
        raise _fail(e)
    _write(conversation_to_json(conversation), output)


@main.command()
@click.argument("source", type=click.File("r", encoding="utf-8"))
@click.option("-o", "--output", type=click.Path(dir_okay=False), help="Write JSON here instead of stdout.")
def share(source, output: str | None):
    """Extract a conversation from a saved, rendered ChatGPT share page."""
    try:
        conversation = parse_share_html(source.read())
    except ChatLensError as e:
        raise _fail(e)
    _write(conversation_to_json(conversation), output)


@main.command()
@click.argument("source", type=click.File("r", encoding="utf-8"))
@click.option(
    "--provider",
    type=click.Choice(available_backends()),
    default=config.get_default_backend,
    help="Analysis backend (default: $CHATLENS_BACKEND or claude).",
)
@click.option("--api-key", help="API key (overrides the provider's environment variable).")
@click.option("--model", help="Model override for the chosen provider.")
@click.option("--timeout", type=float, default=config.get_timeout, help="Seconds to wait for the backend.")
@click.option("-o", "--output", type=click.Path(dir_okay=False), help="Write JSON here instead of stdout.")
def analyze(source, provider: str, api_key: str | None, model: str | None, timeout: float, output: str | None):
    """Parse SOURCE and analyze it with an LLM.

    The result is the parsed conversation with an "analysis" key, ready
    for `chatlens export`.
    """
    conversation = parse_conversation(source.read())
    api_key = api_key or config.get_api_key(provider)
    backend = get_backend(provider, model=model or config.get_model(provider))

    try:
        require_messages(conversation)
        click.echo(f"Analyzing {len(conversation.messages)} messages with {backend.model}...", err=True)
        analysis = analyze_conversation_sync(conversation.messages, backend, api_key, timeout=timeout)
        result = conversation_to_json(conversation, analysis)
    except ChatLensError as e:
        raise _fail(e, backend=provider)

    _write(result, output)


@main.command()
@click.argument("source", type=click.File("r", encoding="utf-8"))
@click.option("-o", "--output", type=click.Path(dir_okay=False), help="Output path (default: stdout).")
@click.option("--save", is_flag=True, help="Write to a file named after the conversation title.")
def export(source, output: str | None, save: bool):
    """Render the JSON written by `chatlens analyze` as Markdown."""
    try:
        data = json.load(source)
    except ValueError as e:
        raise click.ClickException(f"Not a JSON file: {e}")
    except RecursionError:
        raise click.ClickException("JSON file is nested too deeply to read")
    if not isinstance(data, dict) or "analysis" not in data:
        raise click.ClickException("Expected the output of `chatlens analyze` (no 'analysis' key found).")

    try:
        conversation = ParsedConversation.from_dict(data)
        analysis = ConversationAnalysis.from_dict(data["analysis"])
    except ValueError as e:
        raise click.ClickException(f"Invalid conversation: {e}")
    except ChatLensError as e:
        raise _fail(e)

    title = conversation.title or "Untitled Conversation"
    if save and not output:
        output = markdown_filename(title)
    _write(export_to_markdown(title, conversation.messages, analysis), output)


@main.command()
@click.option("--port", default=8080, help="Port to serve on.")
@click.option("--host", default="127.0.0.1", help="Host to bind to.")
def serve(port: int, host: str):
    """Start the HTTP API."""
    click.echo(f"Starting chatlens on http://{host}:{port}")
    uvicorn.run("chatlens.server:app", host=host, port=port, reload=False)
