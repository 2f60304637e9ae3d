"""recursa CLI: drive a sandboxed knowledge graph from the shell.

Commands:
    recursa init                    create recursa.toml and a git repo for the graph
    recursa ls [DIR]                list a directory (ignored entries hidden)
    recursa read PATH               print a file
    recursa write PATH              write --content or stdin (outline validated)
    recursa validate [PATH]         check a file (or stdin) against the outline grammar
    recursa search TEXT             case-insensitive substring search
    recursa query QUERY             "(property k:: v) AND (outgoing-link [[T]])"
    recursa links PATH              outgoing [[links]] of a file
    recursa backlinks PATH          files linking to PATH
    recursa checkpoint save|revert|discard
    recursa commit MESSAGE          commit every change
    recursa log [PATH]              recent commits
    recursa diff [PATH]             working tree (or commit range) diff
    recursa changes                 uncommitted paths
    recursa stats [DIR]             token statistics
"""

from __future__ import annotations

import contextlib
import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import click

from recursa.config import RecursaConfig, init_config, load_config
from recursa.errors import GraphError
from recursa.store import GraphStore
from recursa.validator import validate_outline

if TYPE_CHECKING:
    from collections.abc import Iterator

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_cfg() -> RecursaConfig:
    try:
        cfg = load_config()
    except Exception as exc:
        raise click.ClickException(str(exc)) from exc
    ctx = click.get_current_context(silent=True)
    verbose = bool(ctx and (ctx.find_root().obj or {}).get("verbose"))
    logging.getLogger("recursa").setLevel(logging.DEBUG if verbose else cfg.log.level)
    return cfg


def _store(cfg: RecursaConfig | None = None) -> GraphStore:
    cfg = cfg or _load_cfg()
    with _graph_errors():
        return GraphStore(config=cfg)


@contextlib.contextmanager
def _graph_errors() -> Iterator[None]:
    """Turn graph errors into a one-line "kind: message" CLI failure."""
    try:
        yield
    except GraphError as exc:
        raise click.ClickException(f"{exc.kind}: {exc.message}") from exc
    except (FileExistsError, IsADirectoryError, NotADirectoryError) as exc:
        raise click.ClickException(str(exc)) from exc


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="recursa")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging to stderr")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """recursa: sandboxed knowledge graph with checkpoints."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    logging.basicConfig(format="%(asctime)s %(name)s %(message)s")


# ---------------------------------------------------------------------------
# recursa init
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--dir", "root", default=".", show_default=True, help="Project root")
@click.option("--graph", "graph_path", default=".", show_default=True, help="Graph directory, relative to root")
@click.option("--no-git", is_flag=True, help="Do not create a git repository")
def init(root: str, graph_path: str, no_git: bool) -> None:
    """Create recursa.toml and initialise the graph's git repository."""
    root_path = Path(root).resolve()
    try:
        config_path = init_config(root_path, graph_path=graph_path)
        click.echo(f"Created {config_path}")
    except FileExistsError:
        click.echo("recursa.toml already exists, skipping init")

    cfg = load_config(root_path)
    cfg.graph_path.mkdir(parents=True, exist_ok=True)
    click.echo(f"Graph root : {cfg.graph_path}")
    if no_git:
        return
    store = _store(cfg)
    with _graph_errors():
        store.init_repo()
    click.echo(f"Git repo   : {store.root}")


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


@cli.command("ls")
@click.argument("directory", required=False)
def ls_cmd(directory: str | None) -> None:
    """List a graph directory."""
    store = _store()
    with _graph_errors():
        names = store.list_files(directory)
    for name in names:
        click.echo(name)


@cli.command()
@click.argument("path")
def read(path: str) -> None:
    """Print a file's content exactly."""
    store = _store()
    with _graph_errors():
        click.echo(store.read_file(path), nl=False)


@cli.command()
@click.argument("path")
@click.option("--content", default=None, help="File content (default: read stdin)")
def write(path: str, content: str | None) -> None:
    """Create or overwrite a file; outline documents are validated first."""
    store = _store()
    if content is None:
        content = click.get_text_stream("stdin").read()
    with _graph_errors():
        store.write_file(path, content)
    click.echo(f"Wrote {path}")


@cli.command()
@click.argument("path", required=False)
def validate(path: str | None) -> None:
    """Check a graph file (or stdin) against the block-outline grammar.

    \b
    recursa validate people/ada.md
    printf -- '- a\\n   - b\\n' | recursa validate
    """
    if path is None:
        content = click.get_text_stream("stdin").read()
    else:
        with _graph_errors():
            content = _store().read_file(path)
    result = validate_outline(content)
    if result.is_valid:
        click.echo("OK")
        return
    for message in result.messages():
        click.echo(message, err=True)
    sys.exit(1)


# ---------------------------------------------------------------------------
# Graph
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("text")
def search(text: str) -> None:
    """Case-insensitive substring search over every non-ignored file."""
    store = _store()
    with _graph_errors():
        found = store.search_global(text)
    for rel in found:
        click.echo(rel)


@cli.command()
@click.argument("query")
@click.option("--json", "as_json", is_flag=True, help="Print results as JSON")
def query(query: str, as_json: bool) -> None:
    """Run a graph query.

    \b
    recursa query "(property type:: person)"
    recursa query "(property type:: person) AND (outgoing-link [[Acme]])"
    """
    store = _store()
    with _graph_errors():
        results = store.query_graph(query)
    if as_json:
        click.echo(json.dumps([r.to_dict() for r in results], indent=2))
        return
    if not results:
        click.echo("No matches.", err=True)
        return
    for r in results:
        click.echo(r.file_path)
        for m in r.matches:
            click.echo(f"  {m}")


@cli.command()
@click.argument("path")
def links(path: str) -> None:
    """Outgoing [[links]] of a file."""
    store = _store()
    with _graph_errors():
        targets = store.outgoing_links(path)
    for t in targets:
        click.echo(t)


@cli.command()
@click.argument("path")
def backlinks(path: str) -> None:
    """Files that link to PATH."""
    store = _store()
    with _graph_errors():
        sources = store.backlinks(path)
    for rel in sources:
        click.echo(rel)


# ---------------------------------------------------------------------------
# Checkpoints and history
# ---------------------------------------------------------------------------


@cli.group()
def checkpoint() -> None:
    """Save, revert or discard speculative edits."""


@checkpoint.command("save")
def checkpoint_save() -> None:
    """Push the working tree state onto the checkpoint stack."""
    store = _store()
    with _graph_errors():
        store.save_checkpoint()
    click.echo("Checkpoint saved")


@checkpoint.command("revert")
def checkpoint_revert() -> None:
    """Restore and consume the most recent checkpoint."""
    store = _store()
    with _graph_errors():
        reverted = store.revert_to_last_checkpoint()
    click.echo("Reverted to last checkpoint" if reverted else "No checkpoint to revert to")


@checkpoint.command("discard")
def checkpoint_discard() -> None:
    """Reset to the last commit, deleting untracked files. Not undoable."""
    store = _store()
    with _graph_errors():
        store.discard_changes()
    click.echo("Discarded uncommitted changes")


@cli.command()
@click.argument("message")
def commit(message: str) -> None:
    """Stage and commit every change."""
    store = _store()
    with _graph_errors():
        sha = store.commit_changes(message)
    click.echo(sha)


@cli.command()
@click.argument("path", required=False)
@click.option("-n", "max_commits", default=5, show_default=True, help="Number of commits")
def log(path: str | None, max_commits: int) -> None:
    """Recent commits, optionally for one file."""
    store = _store()
    with _graph_errors():
        commits = store.git_log(path, max_commits)
    for c in commits:
        click.echo(f"{c.hash[:12]}  {c.date}  {c.message}")


@cli.command()
@click.argument("path", required=False, default="")
@click.option("--from", "from_commit", default=None, help="Base commit")
@click.option("--to", "to_commit", default=None, help="Target commit")
def diff(path: str, from_commit: str | None, to_commit: str | None) -> None:
    """Diff of PATH (whole graph when omitted)."""
    store = _store()
    with _graph_errors():
        click.echo(store.git_diff(path, from_commit, to_commit), nl=False)


@cli.command()
def changes() -> None:
    """Uncommitted paths."""
    store = _store()
    with _graph_errors():
        paths = store.changed_files()
    for p in paths:
        click.echo(p)


# ---------------------------------------------------------------------------
# recursa stats
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("directory", required=False)
@click.option("--limit", default=10, show_default=True, help="Largest files to show")
def stats(directory: str | None, limit: int) -> None:
    """Token statistics for the graph (or one directory)."""
    from rich.console import Console
    from rich.table import Table

    store = _store()
    with _graph_errors():
        summary = store.get_directory_token_stats(directory)
        top = store.get_files_by_token_size(directory, limit)
        usage = store.get_memory_usage()

    console = Console()
    table = Table(title=f"recursa: {directory or store.get_graph_root()}", show_header=True, header_style="bold")
    table.add_column("Metric", style="dim", no_wrap=True)
    table.add_column("Value", justify="right")
    table.add_row("Files", str(summary.total_files))
    table.add_row("Tokens", str(summary.total_tokens))
    table.add_row("Avg tokens/file", str(summary.average_tokens_per_file))
    if summary.largest_file is not None:
        table.add_row("Largest", f"{summary.largest_file.file_path} ({summary.largest_file.tokens})")
    table.add_row("Disk usage", f"{usage / 1000:.1f} kB")
    console.print(table)

    if top:
        sizes = Table(show_header=True, header_style="bold")
        sizes.add_column("File")
        sizes.add_column("Tokens", justify="right")
        for s in top:
            sizes.add_row(s.file_path, str(s.tokens))
        console.print(sizes)
