"""CLI entry point for llmstream"""

import asyncio
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(
    name="llmstream",
    help="Stream chat replies and embeddings from LLM providers",
    add_completion=False,
)
console = Console()
err_console = Console(stderr=True)


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    log_file: Path = typer.Option(None, "--log-file", help="Also write logs to this file"),
):
    # Configure logging
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )


def _manager(config: Path | None):
    from llmstream.config.config import Settings
    from llmstream.errors import ConfigurationError
    from llmstream.provider.manager import ProviderManager

    try:
        settings = Settings.load(config)
    except ConfigurationError as e:
        err_console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    return ProviderManager(settings)


def _client(manager, provider: str | None, chat: bool):
    if provider:
        client = manager.get_configured_client(provider)
    elif chat:
        client = manager.active_chat_client()
    else:
        client = manager.active_embedding_client()

    if client is None:
        err_console.print(
            f"[red]No usable provider{f' {provider}' if provider else ''}. "
            "Pass --provider or set a default model in the settings file.[/red]"
        )
        raise typer.Exit(1)
    return client


@app.command()
def providers(
    config: Path = typer.Option(None, "--config", "-c", help="Settings file"),
):
    """List registered providers and their capabilities"""
    manager = _manager(config)

    table = Table(title="Providers")
    table.add_column("Name")
    table.add_column("Display name")
    table.add_column("Builtin")
    table.add_column("Chat")
    table.add_column("Embedding")
    table.add_column("Default models")

    for d in manager.registry.list_descriptors():
        models = ", ".join(m for m in (d.default_chat_model, d.default_embedding_model) if m)
        table.add_row(
            d.name,
            d.display_name,
            "yes" if d.is_builtin else "no",
            "yes" if d.capabilities.chat else "no",
            "yes" if d.capabilities.embedding else "no",
            models or "-",
        )

    console.print(table)


@app.command()
def chat(
    message: str = typer.Argument(..., help="Message to send"),
    provider: str = typer.Option(None, "--provider", "-p"),
    model: str = typer.Option(None, "--model", "-m"),
    system: str = typer.Option(None, "--system", "-s", help="System prompt"),
    config: Path = typer.Option(None, "--config", "-c", help="Settings file"),
):
    """Stream a single reply (non-interactive)"""
    from llmstream.errors import LLMStreamError
    from llmstream.session.message import prepare_messages

    client = _client(_manager(config), provider, chat=True)
    if model:
        client.configure(model=model)

    messages = []
    if system:
        messages.append({"role": "system", "content": system})
    messages.append({"role": "user", "content": message})

    async def run_chat() -> int:
        in_reasoning = False
        async for event in client.events(prepare_messages(messages)):
            if event.type == "reasoning":
                in_reasoning = True
                console.print(event.text, style="dim", end="", markup=False, highlight=False)
            elif event.type == "content":
                if in_reasoning:
                    console.print()
                    in_reasoning = False
                console.print(event.text, end="", markup=False, highlight=False)
            elif event.type == "error":
                console.print()
                err_console.print(f"[red]{event.error}[/red]")
                return 1
        console.print()
        return 0

    try:
        code = asyncio.run(run_chat())
    except LLMStreamError as e:
        err_console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    if code:
        raise typer.Exit(code)


@app.command()
def embed(
    text: str = typer.Argument(..., help="Text to embed"),
    provider: str = typer.Option(None, "--provider", "-p"),
    model: str = typer.Option(None, "--model", "-m"),
    dimensions: int = typer.Option(None, "--dimensions", "-d"),
    config: Path = typer.Option(None, "--config", "-c", help="Settings file"),
):
    """Create an embedding for a piece of text"""
    from llmstream.errors import LLMStreamError
    from llmstream.provider.base import EmbeddingOptions

    client = _client(_manager(config), provider, chat=False)
    options = EmbeddingOptions(model=model, dimensions=dimensions)

    async def run_embed():
        try:
            return await client.create_embedding(text, options)
        finally:
            await client.aclose()

    try:
        result = asyncio.run(run_embed())
    except LLMStreamError as e:
        err_console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    preview = ", ".join(f"{v:.4f}" for v in result.embedding[:5])
    console.print(f"model: {result.model}")
    console.print(f"dimensions: {result.dimensions}")
    console.print(f"tokens: {result.tokens_used}")
    console.print(f"vector: [{preview}, ...]")


@app.command()
def check(
    provider: str = typer.Argument(..., help="Provider to test"),
    api_key: str = typer.Option(None, "--api-key"),
    base_url: str = typer.Option(None, "--base-url"),
    config: Path = typer.Option(None, "--config", "-c", help="Settings file"),
):
    """Test the connection to a provider"""
    client = _client(_manager(config), provider, chat=True)
    ok = asyncio.run(client.validate_config({"api_key": api_key, "base_url": base_url}))

    if ok:
        console.print(f"[green]{provider}: connection OK[/green]")
    else:
        err_console.print(f"[red]{provider}: connection failed[/red]")
        raise typer.Exit(1)


@app.command()
def login(
    provider: str = typer.Argument(..., help="Provider name"),
    api_key: str = typer.Option(..., "--api-key", prompt=True, hide_input=True),
):
    """Store an API key for a provider"""
    from llmstream.auth.credentials import CredentialStore

    CredentialStore().set(provider, api_key)
    console.print(f"Saved API key for {provider}")


def main():
    app()


if __name__ == "__main__":
    main()
