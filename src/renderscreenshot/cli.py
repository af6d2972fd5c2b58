"""RenderScreenshot CLI utilities built with Typer + Rich."""

from __future__ import annotations

import json
import time
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from . import webhook
from .client import Client
from .errors import SDKError
from .options import TakeOptions

console = Console()
app = typer.Typer(help="Capture screenshots and manage the RenderScreenshot API from the shell.")


class OutputFormat(str, Enum):
    TEXT = "text"
    JSON = "json"


def _client(ctx: typer.Context) -> Client:
    opts = ctx.obj or {}
    return Client(opts.get("api_key"), base_url=opts.get("base_url"), max_retries=opts.get("max_retries"))


@contextmanager
def _sdk_errors(title: str) -> Iterator[None]:
    try:
        yield
    except SDKError as exc:
        lines = [str(exc)]
        if exc.code:
            lines.append(f"code: {exc.code}")
        if exc.request_id:
            lines.append(f"request id: {exc.request_id}")
        if exc.retry_after is not None:
            lines.append(f"retry after: {exc.retry_after}s")
        console.print(Panel("\n".join(lines), title=f"{title} failed", border_style="red"))
        raise typer.Exit(code=1) from exc


def _render_payload(payload: Any, *, title: str, output_format: OutputFormat) -> None:
    if output_format is OutputFormat.JSON:
        console.print_json(data=payload)
        return
    if isinstance(payload, dict):
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("field")
        table.add_column("value")
        for key, value in payload.items():
            table.add_row(str(key), json.dumps(value) if isinstance(value, (dict, list)) else str(value))
        console.print(Panel(table, title=title, border_style="green"))
    else:
        console.print(Panel(str(payload), title=title, border_style="green"))


def _render_catalog(items: Any, *, title: str, output_format: OutputFormat) -> None:
    if output_format is OutputFormat.JSON or not isinstance(items, list):
        console.print_json(data=items)
        return
    table = Table(title=title, show_header=True, header_style="bold blue")
    table.add_column("id")
    table.add_column("name")
    for item in items:
        table.add_row(str(item.get("id", "")), str(item.get("name", "")))
    console.print(table)


def _build_options(
    url: str,
    *,
    preset: Optional[str] = None,
    width: Optional[int] = None,
    height: Optional[int] = None,
    image_format: Optional[str] = None,
    full_page: bool = False,
    device: Optional[str] = None,
    dark_mode: bool = False,
) -> TakeOptions:
    if url.lstrip().startswith("<"):
        options = TakeOptions.html(url)
    else:
        options = TakeOptions.url(url)
    if preset:
        options = options.preset(preset)
    if width:
        options = options.width(width)
    if height:
        options = options.height(height)
    if image_format:
        options = options.format(image_format)
    if full_page:
        options = options.full_page()
    if device:
        options = options.device(device)
    if dark_mode:
        options = options.dark_mode()
    return options


OutputFormatOption = typer.Option(
    OutputFormat.TEXT,
    "--format",
    "-f",
    case_sensitive=False,
    help="Output format (text or json).",
)


@app.callback()
def main_options(
    ctx: typer.Context,
    api_key: Optional[str] = typer.Option(
        None, "--api-key", envvar="RENDERSCREENSHOT_API_KEY", help="API key (rs_live_* / rs_test_*)."
    ),
    base_url: Optional[str] = typer.Option(None, "--base-url", help="Custom API base URL."),
    max_retries: Optional[int] = typer.Option(None, "--max-retries", help="Retries for retryable failures."),
):
    ctx.obj = {"api_key": api_key, "base_url": base_url, "max_retries": max_retries}


@app.command()
def config(
    api_key: Optional[str] = typer.Option(None, help="API key to export."),
    base_url: Optional[str] = typer.Option(None, help="Optional custom base URL."),
    signing_key: Optional[str] = typer.Option(None, help="Signing secret for signed URLs."),
    public_key_id: Optional[str] = typer.Option(None, help="Public key id for signed URLs."),
):
    """Show shell commands to export credentials."""

    exports: List[str] = []
    if api_key:
        exports.append(f"export RENDERSCREENSHOT_API_KEY={api_key}")
    if base_url:
        exports.append(f"export RENDERSCREENSHOT_BASE_URL={base_url}")
    if signing_key:
        exports.append(f"export RENDERSCREENSHOT_SIGNING_KEY={signing_key}")
    if public_key_id:
        exports.append(f"export RENDERSCREENSHOT_PUBLIC_KEY_ID={public_key_id}")

    if not exports:
        exports = [
            "export RENDERSCREENSHOT_API_KEY=<your-key>",
            "export RENDERSCREENSHOT_BASE_URL=<optional-base-url>",
            "export RENDERSCREENSHOT_SIGNING_KEY=<optional-rs_secret>",
            "export RENDERSCREENSHOT_PUBLIC_KEY_ID=<optional-rs_pub>",
        ]

    console.print(Panel("\n".join(exports), title="Add these to your shell", border_style="cyan"))


@app.command()
def take(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="Page URL (or inline HTML starting with '<')."),
    output: Path = typer.Option(Path("screenshot.png"), "--output", "-o", help="Where to write the image."),
    preset: Optional[str] = typer.Option(None, help="Preset id, e.g. og_card."),
    width: Optional[int] = typer.Option(None, help="Viewport width."),
    height: Optional[int] = typer.Option(None, help="Viewport height."),
    image_format: Optional[str] = typer.Option(None, "--image-format", help="png, jpeg, webp or pdf."),
    full_page: bool = typer.Option(False, help="Capture the full scrollable page."),
    device: Optional[str] = typer.Option(None, help="Device preset id."),
    dark_mode: bool = typer.Option(False, help="Emulate prefers-color-scheme: dark."),
    metadata: bool = typer.Option(False, "--json", help="Print the JSON response instead of saving bytes."),
):
    """Take a screenshot."""

    options = _build_options(
        url,
        preset=preset,
        width=width,
        height=height,
        image_format=image_format,
        full_page=full_page,
        device=device,
        dark_mode=dark_mode,
    )
    with _sdk_errors("Screenshot"):
        client = _client(ctx)
        if metadata:
            console.print_json(data=client.take_json(options))
            return
        data = client.take(options)
    output.write_bytes(data)
    console.print(
        Panel(f"Wrote {len(data)} bytes to {output}", title="Screenshot", border_style="green")
    )


@app.command()
def url(
    ctx: typer.Context,
    target: str = typer.Argument(..., help="Page URL to capture."),
    expires_in: int = typer.Option(3600, help="Seconds until the signed URL expires."),
    preset: Optional[str] = typer.Option(None, help="Preset id, e.g. og_card."),
    width: Optional[int] = typer.Option(None, help="Viewport width."),
    height: Optional[int] = typer.Option(None, help="Viewport height."),
    signing_key: Optional[str] = typer.Option(None, envvar="RENDERSCREENSHOT_SIGNING_KEY", help="rs_secret_* key."),
    public_key_id: Optional[str] = typer.Option(None, envvar="RENDERSCREENSHOT_PUBLIC_KEY_ID", help="rs_pub_* id."),
):
    """Generate a signed screenshot URL."""

    options = _build_options(target, preset=preset, width=width, height=height)
    with _sdk_errors("Signed URL"):
        signed = _client(ctx).generate_url(
            options,
            expires_at=int(time.time()) + expires_in,
            signing_key=signing_key,
            public_key_id=public_key_id,
        )
    typer.echo(signed)


@app.command()
def batch(
    ctx: typer.Context,
    urls: List[str] = typer.Argument(..., help="URLs to capture."),
    preset: Optional[str] = typer.Option(None, help="Preset applied to every URL."),
    output_format: OutputFormat = OutputFormatOption,
):
    """Submit a batch job."""

    options: Optional[Dict[str, Any]] = {"preset": preset} if preset else None
    with _sdk_errors("Batch"):
        result = _client(ctx).batch(urls, options=options)
    _render_payload(result, title="Batch", output_format=output_format)


@app.command("batch-status")
def batch_status(
    ctx: typer.Context,
    batch_id: str = typer.Argument(..., help="Batch job id."),
    output_format: OutputFormat = OutputFormatOption,
):
    """Show the status of a batch job."""

    with _sdk_errors("Batch status"):
        result = _client(ctx).get_batch(batch_id)
    _render_payload(result, title=f"Batch {batch_id}", output_format=output_format)


@app.command()
def presets(ctx: typer.Context, output_format: OutputFormat = OutputFormatOption):
    """List screenshot presets."""

    with _sdk_errors("Presets"):
        items = _client(ctx).presets()
    _render_catalog(items, title="Presets", output_format=output_format)


@app.command()
def devices(ctx: typer.Context, output_format: OutputFormat = OutputFormatOption):
    """List device presets."""

    with _sdk_errors("Devices"):
        items = _client(ctx).devices()
    _render_catalog(items, title="Devices", output_format=output_format)


@app.command()
def usage(ctx: typer.Context, output_format: OutputFormat = OutputFormatOption):
    """Show credit usage for the current period."""

    with _sdk_errors("Usage"):
        result = _client(ctx).usage()
    _render_payload(result, title="Usage", output_format=output_format)


@app.command("cache-get")
def cache_get(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Cache key."),
    output: Path = typer.Option(Path("cached.png"), "--output", "-o", help="Where to write the image."),
):
    """Download a cached screenshot."""

    with _sdk_errors("Cache get"):
        data = _client(ctx).cache.get(key)
    if data is None:
        console.print(Panel(f"No cache entry for {key}", title="Cache", border_style="yellow"))
        raise typer.Exit(code=1)
    output.write_bytes(data)
    console.print(Panel(f"Wrote {len(data)} bytes to {output}", title="Cache", border_style="green"))


@app.command("cache-delete")
def cache_delete(ctx: typer.Context, key: str = typer.Argument(..., help="Cache key.")):
    """Delete one cache entry."""

    with _sdk_errors("Cache delete"):
        deleted = _client(ctx).cache.delete(key)
    if deleted:
        console.print(Panel(f"Deleted {key}", title="Cache", border_style="green"))
    else:
        console.print(Panel(f"No cache entry for {key}", title="Cache", border_style="yellow"))


@app.command("cache-purge")
def cache_purge(
    ctx: typer.Context,
    keys: Optional[List[str]] = typer.Option(None, "--key", help="Cache key to purge (repeatable)."),
    url_pattern: Optional[str] = typer.Option(None, "--url", help="Source URL glob pattern."),
    before: Optional[str] = typer.Option(None, help="Purge entries created before this ISO-8601 time."),
    pattern: Optional[str] = typer.Option(None, help="Storage path pattern."),
    output_format: OutputFormat = OutputFormatOption,
):
    """Purge cache entries by key, URL pattern, date or storage path."""

    selectors = [bool(keys), url_pattern is not None, before is not None, pattern is not None]
    if sum(selectors) != 1:
        raise typer.BadParameter("Pass exactly one of --key, --url, --before or --pattern.")

    with _sdk_errors("Cache purge"):
        cache = _client(ctx).cache
        if keys:
            result = cache.purge(keys)
        elif url_pattern is not None:
            result = cache.purge_url(url_pattern)
        elif before is not None:
            result = cache.purge_before(before)
        else:
            result = cache.purge_pattern(pattern)
    _render_payload(result, title="Cache purge", output_format=output_format)


@app.command("verify-webhook")
def verify_webhook(
    payload_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="File holding the raw request body."),
    signature: str = typer.Option(..., help="X-Webhook-Signature header value."),
    timestamp: str = typer.Option(..., help="X-Webhook-Timestamp header value."),
    secret: str = typer.Option(..., envvar="RENDERSCREENSHOT_WEBHOOK_SECRET", help="Webhook secret."),
    tolerance: int = typer.Option(webhook.DEFAULT_TOLERANCE, help="Accepted clock skew in seconds."),
):
    """Check a webhook signature and print the parsed event."""

    payload = payload_file.read_bytes()
    if not webhook.verify(payload, signature, timestamp, secret, tolerance=tolerance):
        console.print(Panel("Signature invalid or timestamp outside tolerance", title="Webhook", border_style="red"))
        raise typer.Exit(code=1)
    with _sdk_errors("Webhook"):
        event = webhook.parse(payload)
    table = Table(show_header=False)
    table.add_column("field")
    table.add_column("value")
    table.add_row("event", str(event.event))
    table.add_row("id", str(event.id))
    table.add_row("timestamp", str(event.timestamp))
    table.add_row("data", json.dumps(event.data))
    console.print(Panel(table, title="Webhook verified", border_style="green"))


def main():  # pragma: no cover
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
