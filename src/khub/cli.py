"""CLI entry point for Knowledge Hub."""

import logging
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from .config import DEFAULT_CONFIG, load_config

console = Console()


@click.group()
@click.option("--config", "-c", "config_path", default=None, help="Path to config file")
@click.option("--tenant", "-t", default=None, help="Tenant id (default: from config)")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx, config_path, tenant, verbose):
    """Knowledge Hub - Ingest documents and ask grounded questions about them."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=verbose)],
    )
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["tenant"] = tenant


def _get_config(ctx) -> dict:
    return load_config(ctx.obj.get("config_path"))


def _get_services(ctx):
    from .services import build_services

    if "services" not in ctx.obj:
        ctx.obj["services"] = build_services(_get_config(ctx))
    return ctx.obj["services"]


def _tenant(ctx, config: dict) -> str:
    return ctx.obj.get("tenant") or config["tenant_id"]


@cli.command()
@click.option("--path", default=None, help="Custom data path")
@click.pass_context
def init(ctx, path):
    """Create the data directories and a starter configuration."""
    import yaml

    data_path = Path(path).expanduser().resolve() if path else Path("~/.khub").expanduser()
    console.print(f"[bold green]Initializing Knowledge Hub at {data_path}[/]")

    for d in ["ingest", "chroma"]:
        (data_path / d).mkdir(parents=True, exist_ok=True)

    config_file = data_path / "config.yaml"
    if not config_file.exists():
        cfg = dict(DEFAULT_CONFIG)
        cfg["data_path"] = str(data_path)
        cfg["ingest_path"] = str(data_path / "ingest")
        cfg["chroma_path"] = str(data_path / "chroma")
        cfg["database_path"] = str(data_path / "khub.db")
        header = (
            "# Claude API key for answers (or set ANTHROPIC_API_KEY env var)\n"
            "# claude_api_key: sk-ant-your-key-here\n\n"
            "# Vector index: chromadb (local), memory, or none\n"
            "# Records: sqlite or memory\n\n"
        )
        config_file.write_text(header + yaml.dump(cfg, default_flow_style=False, sort_keys=False))
        console.print(f"  Created config: {config_file}")

    console.print("[bold green]✓ Knowledge Hub initialized![/]")
    console.print(f"  Drop files in: {data_path / 'ingest'}")
    console.print("  Run: khub ingest")


@cli.command()
@click.argument("path", required=False)
@click.pass_context
def ingest(ctx, path):
    """Ingest files from the ingest directory or a specific path."""
    from .ingest.extract import collect_files, raw_from_file
    from .services import LOCAL_CONNECTOR_ID, ensure_local_connector

    services = _get_services(ctx)
    config = services.config
    tenant_id = _tenant(ctx, config)

    target = Path(path) if path else Path(config["ingest_path"])
    if target.is_file():
        files = [target]
    elif target.is_dir():
        files = collect_files(target)
    else:
        console.print(f"[red]Path not found: {target}[/]")
        return

    if not files:
        console.print("[yellow]No files to process.[/]")
        return

    ensure_local_connector(services.records, tenant_id)
    console.print(f"[blue]Processing {len(files)} file(s) for tenant {tenant_id}...[/]")

    table = Table(title="Ingestion Results")
    table.add_column("File", style="cyan")
    table.add_column("Type")
    table.add_column("Chunks", justify="right", style="green")
    table.add_column("Time", justify="right", style="dim")
    table.add_column("Status")

    succeeded = 0
    for file in files:
        result = services.pipeline.process(
            raw_from_file(file), tenant_id, connector_id=LOCAL_CONNECTOR_ID, connector_type="manual_upload"
        )
        doc_type = result.classification.doc_type if result.classification else "-"
        if result.success:
            succeeded += 1
            status = "[green]✓[/]"
        else:
            status = f"[red]✗ {result.error}[/]"
        table.add_row(file.name, doc_type, str(result.chunks_created), f"{result.processing_time_ms} ms", status)

    console.print(table)
    console.print(f"[green]✓ Ingested {succeeded}/{len(files)} file(s)[/]")
    if services.usage.calls:
        console.print(f"[dim]Embedding usage: ~{services.usage.tokens} tokens, ${services.usage.cost_usd:.4f}[/]")


@cli.command()
@click.argument("question")
@click.option("--conversation", "conversation_id", default=None, help="Continue an existing conversation")
@click.option("--user", "user_id", default=None, help="User id (default: from config)")
@click.pass_context
def ask(ctx, question, conversation_id, user_id):
    """Ask a question about your documents."""
    from .errors import NotFound

    services = _get_services(ctx)
    config = services.config
    if not services.llm.configured:
        console.print("[yellow]No Claude API key configured; answers will fall back to raw sources.[/]")

    try:
        turn = services.chat.ask(
            question,
            _tenant(ctx, config),
            user_id or config["user_id"],
            conversation_id=conversation_id,
        )
    except NotFound as e:
        console.print(f"[red]{e}[/]")
        return

    console.print(Panel(Markdown(turn.answer), title=f"Answer ({turn.kind})", border_style="green"))
    for source in turn.sources:
        preview = source.excerpt[:100].replace("\n", " ")
        console.print(f"  [dim][{source.id}] {source.title} ({source.char_start}-{source.char_end}): {preview}[/]")
    console.print(f"[dim]Conversation: {turn.conversation_id}[/]")


@cli.command()
@click.argument("query")
@click.option("--n", "-n", default=5, help="Number of results")
@click.pass_context
def search(ctx, query, n):
    """Semantic search over the knowledge base."""
    from .errors import EmbeddingFailure

    services = _get_services(ctx)
    console.print(f"[blue]Searching for: '{query}'[/]\n")

    try:
        snippets = services.answerer.retrieve(query, _tenant(ctx, services.config), top_k=n)
    except EmbeddingFailure as e:
        console.print(f"[red]Search failed: {e}[/]")
        return

    if not snippets:
        console.print("[yellow]No results found. Have you run 'khub ingest'?[/]")
        return

    table = Table(title="Search Results")
    table.add_column("#", style="dim", width=3)
    table.add_column("Title", style="cyan")
    table.add_column("Score", justify="right", style="green")
    table.add_column("Preview", max_width=60)

    for i, s in enumerate(snippets, 1):
        table.add_row(str(i), s.document_title or s.document_id, f"{s.score:.3f}", s.text[:80].replace("\n", " "))

    console.print(table)


@cli.command("route")
@click.argument("query")
@click.option("--conversation", "conversation_id", default=None, help="Route against this conversation's history")
@click.pass_context
def route_cmd(ctx, query, conversation_id):
    """Show how a query would be routed."""
    from .query.entities import detect
    from .query.router import route

    history = []
    if conversation_id:
        services = _get_services(ctx)
        if services.records.get_conversation(_tenant(ctx, services.config), conversation_id) is None:
            console.print(f"[red]Conversation {conversation_id} not found[/]")
            return
        history = services.records.list_messages(conversation_id)

    decision = route(query, history)
    table = Table(title="Routing Decision", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Route", decision.route_type)
    table.add_row("Confidence", f"{decision.confidence:.2f}")
    table.add_row("Search documents", str(decision.search_documents))
    table.add_row("Search memory", str(decision.search_memory))
    table.add_row("Attach last answer", str(decision.attach_last_answer))
    table.add_row("Reasoning", decision.reasoning)
    info = detect(query)
    if info.is_entity_query:
        table.add_row("Entity query", f"{info.entity_type} / {info.intent} ({', '.join(info.keywords) or 'no keywords'})")
    console.print(table)


@cli.command()
@click.argument("query")
@click.option("--user", "user_id", default=None, help="User id (default: from config)")
@click.pass_context
def entities(ctx, query, user_id):
    """Search entities across every document."""
    from .query.entities import format_entity_results

    services = _get_services(ctx)
    config = services.config
    info = services.entity_search.detect(query)
    if not info.is_entity_query:
        console.print("[yellow]Not an entity query. Try 'who knows ...' or 'how many people ...'.[/]")
        return

    result = services.entity_search.search(query, info, _tenant(ctx, config), user_id or config["user_id"])
    console.print(format_entity_results(result, is_count=info.is_count_query))


@cli.command()
@click.argument("document_id")
@click.pass_context
def delete(ctx, document_id):
    """Delete a document with its chunks and vectors."""
    services = _get_services(ctx)
    if services.pipeline.delete_document(_tenant(ctx, services.config), document_id):
        console.print(f"[green]✓ Deleted {document_id}[/]")
    else:
        console.print(f"[yellow]Document not found: {document_id}[/]")


@cli.command()
@click.pass_context
def stats(ctx):
    """Show knowledge base statistics."""
    from collections import Counter

    services = _get_services(ctx)
    config = services.config
    tenant_id = _tenant(ctx, config)
    documents = services.records.list_documents(tenant_id)

    console.print(f"\n[bold]Knowledge Hub Stats[/] [dim](tenant {tenant_id})[/]")
    console.print(f"  Documents: {len(documents)}")
    console.print(f"  Chunks: {services.records.count_chunks(tenant_id)}")
    console.print(f"  Vectors: {services.gateway.count(tenant_id)}")
    console.print(f"  Queries logged: {len(services.records.list_query_logs(tenant_id))}")

    by_type = Counter(d.doc_type for d in documents)
    if by_type:
        table = Table(title="Documents by Type")
        table.add_column("Type", style="cyan")
        table.add_column("Count", justify="right", style="green")
        for doc_type, count in by_type.most_common():
            table.add_row(doc_type, str(count))
        console.print(table)


@cli.command()
@click.option("--debounce", default=5.0, help="Seconds to wait after last change before processing")
@click.pass_context
def watch(ctx, debounce):
    """Watch the ingest directory and ingest new files automatically."""
    from .watcher import FileWatcher

    services = _get_services(ctx)
    watcher = FileWatcher(services, _tenant(ctx, services.config), debounce=debounce)
    watcher.run()


if __name__ == "__main__":
    cli()
