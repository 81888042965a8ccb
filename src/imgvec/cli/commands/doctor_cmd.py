from __future__ import annotations

import argparse

from rich.panel import Panel
from rich.table import Table

from imgvec.cli.context import CLIContext
from imgvec.core.config import environment_summary
from imgvec.core.errors import ConfigurationError
from imgvec.domain.models.vector import HealthStatus


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("doctor", help="Show configuration and check external services")
    parser.set_defaults(handler=run_doctor)


def run_doctor(args: argparse.Namespace, ctx: CLIContext) -> int:
    env = Table(title="Environment")
    env.add_column("Variable")
    env.add_column("Value", overflow="fold")
    for key, value in environment_summary().items():
        env.add_row(key, value)
    ctx.console.print(env)

    checks = {
        "Embedding service": _check_embedding(ctx),
        "Vector store": _check_vector_store(ctx),
    }
    out = Table(title="Service Checks")
    out.add_column("Service")
    out.add_column("Status")
    out.add_column("Message", overflow="fold")
    for name, status in checks.items():
        out.add_row(name, "[green]OK[/green]" if status.ok else "[red]FAIL[/red]", status.message)
    ctx.console.print(out)

    ok = all(status.ok for status in checks.values())
    ctx.console.print(
        Panel.fit(
            f"Env file: {ctx.env_file or 'none found'}\n"
            f"Checks run: {len(checks)}\n"
            f"Status: {'PASS' if ok else 'FAIL'}",
            title="Doctor Summary",
        )
    )
    return 0 if ok else 1


def _check_embedding(ctx: CLIContext) -> HealthStatus:
    try:
        client = ctx.embedding_client()
    except ConfigurationError as exc:
        return HealthStatus(ok=False, message=str(exc))
    try:
        return client.health_check()
    finally:
        client.close()


def _check_vector_store(ctx: CLIContext) -> HealthStatus:
    try:
        store = ctx.vector_store()
    except ConfigurationError as exc:
        return HealthStatus(ok=False, message=str(exc))
    try:
        return store.health_check()
    finally:
        store.close()
