"""CLI entrypoint for content-sync."""

from __future__ import annotations

import json
from typing import Optional

import requests
import typer

from content_sync.core.config import get_settings
from content_sync.sync.runner import parse_status_line

app = typer.Typer(name="csync", help="content-sync command-line interface")
versions_app = typer.Typer(name="versions", help="Version retention")
app.add_typer(versions_app, name="versions")


def _resolve_host(override: Optional[str]) -> str:
    """``--host`` wins, then ``runner.host`` / ``CSYNC_SYNC_HOST`` from settings."""
    return (override or get_settings().sync_host).rstrip("/")


def _request(method: str, path: str, host: Optional[str] = None, **kwargs) -> requests.Response:
    base = _resolve_host(host)
    url = f"{base}{path}"
    try:
        resp = requests.request(method, url, timeout=kwargs.pop("timeout", 60), **kwargs)
    except requests.ConnectionError:
        typer.echo(f"Sync server not reachable at {base}. Start it with: csync serve", err=True)
        raise typer.Exit(code=1)
    if not resp.ok:
        try:
            detail = resp.json()
        except ValueError:
            detail = resp.text
        typer.echo(f"Request failed ({resp.status_code}): {detail}", err=True)
        raise typer.Exit(code=2 if resp.status_code == 409 else 1)
    return resp


@app.command()
def sync(
    command: str = typer.Argument("sync:all", help="Step to run, e.g. sync:posts, sync:pages, embeddings:backfill"),
    host: Optional[str] = typer.Option(None, "--host", help="Override sync server host"),
) -> None:
    """Run a sync command on the server and stream its output."""
    resp = _request("POST", "/api/sync", host=host, json={"command": command}, stream=True, timeout=(5, None))
    status: dict[str, object] | None = None
    with resp:
        for line in resp.iter_lines(decode_unicode=True):
            if not line:
                continue
            parsed = parse_status_line(line)
            if parsed is not None:
                status = parsed
            typer.echo(line)
    if status is None or status.get("status") != "succeeded":
        raise typer.Exit(code=1)


@app.command()
def cancel(host: Optional[str] = typer.Option(None, "--host", help="Override sync server host")) -> None:
    """Cancel the running sync command."""
    resp = _request("POST", "/api/sync/cancel", host=host)
    typer.echo(json.dumps(resp.json(), indent=2))


@app.command()
def health(host: Optional[str] = typer.Option(None, "--host", help="Override sync server host")) -> None:
    """Show whether the server is up and whether a sync is running."""
    resp = _request("GET", "/health", host=host, timeout=2)
    typer.echo(json.dumps(resp.json(), indent=2))


@app.command()
def backfill(host: Optional[str] = typer.Option(None, "--host", help="Override sync server host")) -> None:
    """Embed one batch of documents that have no embedding yet."""
    resp = _request("POST", "/embeddings/backfill", host=host)
    typer.echo(json.dumps(resp.json(), indent=2))


@app.command()
def export(
    entity_type: str = typer.Argument(..., help="post or page"),
    slug: str = typer.Argument(..., help="Document slug"),
    host: Optional[str] = typer.Option(None, "--host", help="Override sync server host"),
) -> None:
    """Print a stored document as markdown with front-matter."""
    resp = _request("GET", f"/documents/{entity_type}/{slug}/export", host=host)
    typer.echo(resp.text)


@app.command()
def serve(
    bind: str = typer.Option("127.0.0.1", "--bind", help="Interface to listen on"),
    port: int = typer.Option(3001, "--port", help="Port to listen on"),
) -> None:
    """Run the sync server."""
    import uvicorn

    uvicorn.run("content_sync.app:app", host=bind, port=port)


@versions_app.command("status")
def versions_status(host: Optional[str] = typer.Option(None, "--host", help="Override sync server host")) -> None:
    """Show whether retention is on and how many snapshots exist."""
    enabled = _request("GET", "/versions/enabled", host=host).json()
    stats = _request("GET", "/versions/stats", host=host).json()
    typer.echo(json.dumps({**enabled, **stats}, indent=2))


@versions_app.command("enable")
def versions_enable(host: Optional[str] = typer.Option(None, "--host", help="Override sync server host")) -> None:
    resp = _request("PUT", "/versions/enabled", host=host, json={"enabled": True})
    typer.echo(json.dumps(resp.json(), indent=2))


@versions_app.command("disable")
def versions_disable(host: Optional[str] = typer.Option(None, "--host", help="Override sync server host")) -> None:
    resp = _request("PUT", "/versions/enabled", host=host, json={"enabled": False})
    typer.echo(json.dumps(resp.json(), indent=2))


@versions_app.command("purge")
def versions_purge(host: Optional[str] = typer.Option(None, "--host", help="Override sync server host")) -> None:
    """Remove snapshots older than the retention window."""
    resp = _request("POST", "/versions/purge", host=host)
    typer.echo(json.dumps(resp.json(), indent=2))


if __name__ == "__main__":
    app()
