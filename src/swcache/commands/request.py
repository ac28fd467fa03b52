"""Request commands -- run or explain a single request.

``swcache fetch`` pushes one request through the worker exactly as an
intercepted client request would be handled, printing where the response
came from on stderr and the body on stdout.  ``swcache classify`` only
walks the rule list and reports the decision, touching neither the store
nor the network.
"""

from __future__ import annotations

import asyncio
from typing import Optional

import httpx
import typer

from swcache.commands.common import absolute_url, build_worker, load_config, parse_headers
from swcache.exceptions import SwcacheError
from swcache.exit_codes import EXIT_NETWORK_FAILURE
from swcache.models import ResponseSource
from swcache.namespaces import namespace_name
from swcache.output import error, format_response, get_output, info
from swcache.router import Router, build_default_rules
from swcache.worker import CacheWorker, InterceptResult


def fetch_command(
    ctx: typer.Context,
    url: str = typer.Argument(help="Absolute URL, or path relative to the site origin."),
    method: str = typer.Option("GET", "--method", "-X", help="HTTP method."),
    header: Optional[list[str]] = typer.Option(
        None, "--header", "-H", help="Request header as 'Name: value' (repeatable)."
    ),
) -> None:
    """Fetch a URL through the caching layer.

    Declined (pass-through) requests are sent straight to the network.

    Example::

        swcache fetch /build/app.a1b2.js
        swcache fetch https://example.com/skins/default/theme.css -v
        swcache fetch /build/app.js -H "Range: bytes=0-99"
    """
    config = load_config(ctx)
    try:
        request = httpx.Request(
            method.upper(), absolute_url(url, config), headers=parse_headers(header)
        )
        worker = build_worker(ctx, config)
        result, response = asyncio.run(_run(worker, request))
    except SwcacheError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    except httpx.TransportError as exc:
        error(f"Network error: {exc}")
        raise typer.Exit(code=EXIT_NETWORK_FAILURE) from None

    if result.route is not None:
        info(
            f"{result.source.value} via {result.route.strategy.value} "
            f"(rule {result.route.rule}, namespace {result.namespace})"
        )
    else:
        info(ResponseSource.PASS_THROUGH.value)
    info(f"HTTP {response.status_code} {response.reason_phrase or ''}".rstrip())

    content_type = response.headers.get("content-type", "")
    if not response.content:
        return
    if _is_text(content_type):
        format_response(response.text, content_type)
    else:
        info(f"<{len(response.content)} bytes of {content_type or 'binary data'}>")


async def _run(
    worker: CacheWorker, request: httpx.Request
) -> tuple[InterceptResult, httpx.Response]:
    try:
        result = await worker.fetch(request)
        if result.response is None:
            response = await worker.network.handle_async_request(request)
        else:
            response = result.response
        await response.aread()
        return result, response
    finally:
        await worker.aclose()


def _is_text(content_type: str) -> bool:
    return (
        not content_type
        or content_type.startswith("text/")
        or "json" in content_type
        or "javascript" in content_type
        or "xml" in content_type
    )


def classify_command(
    ctx: typer.Context,
    url: str = typer.Argument(help="Absolute URL, or path relative to the site origin."),
    method: str = typer.Option("GET", "--method", "-X", help="HTTP method."),
    header: Optional[list[str]] = typer.Option(
        None, "--header", "-H", help="Request header as 'Name: value' (repeatable)."
    ),
) -> None:
    """Show which rule, strategy and namespace a URL maps to.

    Example::

        swcache classify /assets/song1/index.json
        swcache classify https://fonts.googleapis.com/css?family=Roboto --json
    """
    config = load_config(ctx)
    try:
        request = httpx.Request(
            method.upper(), absolute_url(url, config), headers=parse_headers(header)
        )
    except SwcacheError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    router = Router(build_default_rules(config.site_origin, config.router))
    rule = router.match(request)
    route = router.classify(request)

    data = {
        "url": str(request.url),
        "rule": rule.name if rule else None,
        "strategy": route.strategy.value if route else ResponseSource.PASS_THROUGH.value,
        "namespace": namespace_name(route.namespace_kind, config.build_version) if route else None,
    }
    get_output().debug(f"Evaluated {len(router.rules)} rules for {request.url}")
    format_response(data)
