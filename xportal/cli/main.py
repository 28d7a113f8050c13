"""xportal command-line interface.

Commands:
    claims  -- list claims, or per-namespace Ready/Synced counts.
    trace   -- trace one claim; print a tree or export JSON.
    serve   -- run the REST API (same as ``python -m xportal``).
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import click
from kubernetes_asyncio.config import ConfigException  # type: ignore[import-untyped]

from xportal.catalog.claims import ClaimNotFoundError, get_claim, list_claims, summarize_claims
from xportal.config import load_config
from xportal.gateway.base import FetchError, ResourceGateway
from xportal.gateway.kubernetes import create_gateway
from xportal.models.config import XPortalConfig
from xportal.models.resources import FetchedResource, ResourceTrace, condition_is_true
from xportal.observability.logging import setup_logging
from xportal.trace.assembler import TraceAssembler, TraceError

T = TypeVar("T")


def _run_with_gateway(config: XPortalConfig, fn: Callable[[ResourceGateway], Awaitable[T]]) -> T:
    async def _runner() -> T:
        gateway = await create_gateway(config.gateway)
        try:
            return await fn(gateway)
        finally:
            await gateway.close()

    try:
        return asyncio.run(_runner())
    except (FetchError, TraceError, ClaimNotFoundError) as exc:
        raise click.ClickException(str(exc)) from exc
    except ConfigException as exc:
        raise click.ClickException(f"cannot load Kubernetes configuration: {exc}") from exc


def _flag(ok: bool) -> str:
    return "True" if ok else "False"


def _label(resource: FetchedResource) -> str:
    return f"{resource.kind}/{resource.name}"


def render_tree(trace: ResourceTrace) -> list[str]:
    """Render the trace as indented lines, one per node."""
    meta = trace.claim.get("metadata") or {}
    lines = [
        f"{trace.claim.get('kind', '')}/{meta.get('name', '')} "
        f"ready={_flag(condition_is_true(trace.claim, 'Ready'))} "
        f"synced={_flag(condition_is_true(trace.claim, 'Synced'))}"
    ]
    composite = trace.composite
    lines.append(f"└─ {_label(composite)} ready={_flag(composite.ready)} synced={_flag(composite.synced)}")
    if trace.composition is not None:
        comp_name = (trace.composition.composition.get("metadata") or {}).get("name", "")
        lines.append(f"   ├─ Composition/{comp_name} revisions={len(trace.composition.revisions)}")

    def walk(nodes: tuple[FetchedResource, ...], indent: str) -> None:
        for i, node in enumerate(nodes):
            last = i == len(nodes) - 1
            lines.append(
                f"{indent}{'└─ ' if last else '├─ '}{_label(node)} "
                f"ready={_flag(node.ready)} synced={_flag(node.synced)} events={len(node.events)}"
            )
            walk(node.dependencies, indent + ("   " if last else "│  "))

    walk(trace.managed_resources, "   ")
    return lines


@click.group()
@click.option("--log-level", type=click.Choice(["debug", "info", "warning", "error"]), default=None)
@click.option("--context", "kube_context", default=None, help="kubeconfig context to use.")
@click.pass_context
def cli(ctx: click.Context, log_level: str | None, kube_context: str | None) -> None:
    """Inspect Crossplane claims and trace them to their managed resources."""
    try:
        config = load_config()
    except ValueError as exc:
        raise click.ClickException(f"invalid configuration: {exc}") from exc
    if log_level:
        config.log.level = log_level
    if kube_context:
        config.gateway.kube_context = kube_context
    setup_logging(config.log.level)
    ctx.obj = config


@cli.command()
@click.option("-n", "--namespace", default=None, help="Only claims in this namespace.")
@click.option("--summary", is_flag=True, help="Show Ready/Synced counts per namespace.")
@click.pass_obj
def claims(config: XPortalConfig, namespace: str | None, summary: bool) -> None:
    """List claims across every XRD that offers claim names."""
    items = _run_with_gateway(config, lambda gw: list_claims(gw, namespace=namespace))

    if summary:
        for s in summarize_claims(items, namespace=namespace):
            click.echo(f"{s.namespace}\ttotal={s.total}\tready={s.ready}\tsynced={s.synced}")
        return

    for claim in items:
        meta = claim.get("metadata") or {}
        click.echo(
            f"{claim.get('claimNamespace') or ''}\t{claim.get('kind', '')}\t{meta.get('name', '')}"
            f"\t{_flag(condition_is_true(claim, 'Ready'))}\t{_flag(condition_is_true(claim, 'Synced'))}"
        )


@cli.command()
@click.argument("kind")
@click.argument("name")
@click.option("-n", "--namespace", default="default", show_default=True)
@click.option("-o", "--output", type=click.Path(dir_okay=False, writable=True), default=None,
              help="Write the trace as JSON to this file.")
@click.option("--json", "as_json", is_flag=True, help="Print JSON instead of a tree.")
@click.option("--max-depth", type=click.IntRange(1, 50), default=None)
@click.option("--no-packages", is_flag=True, help="Skip the installed package inventory.")
@click.pass_obj
def trace(
    config: XPortalConfig,
    kind: str,
    name: str,
    namespace: str,
    output: str | None,
    as_json: bool,
    max_depth: int | None,
    no_packages: bool,
) -> None:
    """Trace claim KIND/NAME through its composite to every managed resource."""

    async def _trace(gateway: ResourceGateway) -> ResourceTrace:
        claim = await get_claim(gateway, kind, name, namespace)
        assembler = TraceAssembler(
            gateway,
            max_depth=max_depth or config.trace.max_depth,
            default_namespace=config.trace.default_namespace,
            include_packages=config.trace.include_packages and not no_packages,
        )
        return await assembler.assemble_trace(claim)

    result = _run_with_gateway(config, _trace)
    data: dict[str, Any] = result.to_dict()

    if output:
        with open(output, "w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=2, default=str)
        click.echo(f"trace written to {output}")
    elif as_json:
        click.echo(json.dumps(data, indent=2, default=str))
    else:
        for line in render_tree(result):
            click.echo(line)


@cli.command()
@click.option("--port", type=click.IntRange(1024, 65535), default=None)
@click.pass_obj
def serve(config: XPortalConfig, port: int | None) -> None:
    """Run the REST API until interrupted."""
    from xportal.app import main

    if port:
        config.api.port = port
    asyncio.run(main(config))
