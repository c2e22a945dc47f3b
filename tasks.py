"""Invoke tasks for day-to-day work on the collector.

Commands run through `uv` so they always use the environment locked by
pyproject.toml. The `collect-once` and `migrate-local` tasks point the agent
at a SQLite file under `.local/` so no MySQL server is needed.
"""

from __future__ import annotations

import shlex
from collections.abc import Mapping, Sequence
from pathlib import Path

from invoke import Collection, Context, task

ROOT = Path(__file__).parent
LOCAL_DIR = ROOT / ".local"


def _uv(ctx: Context, argv: Sequence[str], *, env: Mapping[str, str] | None = None) -> None:
    """Run ``uv`` with ``argv``, layering ``env`` over the configured run env.

    Args:
        ctx: Invoke context.
        argv: Arguments following the ``uv`` executable.
        env: Extra environment variables for this call only.
    """
    merged = {**(ctx.config.run.env or {}), **(env or {})}
    ctx.run(shlex.join(["uv", *argv]), echo=True, pty=True, env=merged)


def _sqlite_env(mount: str, node: str) -> dict[str, str]:
    LOCAL_DIR.mkdir(exist_ok=True)
    return {
        "DB_URL": f"sqlite:///{(LOCAL_DIR / 'collector.db').as_posix()}",
        "MOUNT_PATH": mount,
        "NODE_NAME": node,
        "OTEL_SDK_DISABLED": "true",
        "LOG_LEVEL": "debug",
    }


@task
def sync(ctx: Context, dev: bool = True) -> None:
    """Install the project, with the dev extra unless ``--no-dev`` is given."""
    _uv(ctx, ["sync", "--extra", "dev"] if dev else ["sync"])


@task(help={"k": "Only run tests matching this -k expression.", "options": "Raw pytest flags."})
def tests(ctx: Context, k: str = "", options: str = "") -> None:
    """Run pytest over tests/.

    Args:
        ctx: Invoke context.
        k: Selection expression passed to ``pytest -k``.
        options: Additional pytest flags, split shell-style.
    """
    argv = ["run", "pytest", *shlex.split(options)]
    if k:
        argv += ["-k", k]
    _uv(ctx, [*argv, "tests"])


@task(help={"fix": "Let ruff rewrite fixable problems."})
def lint(ctx: Context, fix: bool = False) -> None:
    """Check formatting and lint rules with ruff."""
    _uv(ctx, ["run", "ruff", "format", "--check", "src", "tests"])
    _uv(ctx, ["run", "ruff", "check", "src", "tests", *(["--fix"] if fix else [])])


@task
def typecheck(ctx: Context) -> None:
    """Type-check the package with mypy."""
    _uv(ctx, ["run", "mypy", "src"])


@task(help={"mount": "Directory to snapshot.", "node": "Value for NODE_NAME."})
def collect_once(ctx: Context, mount: str = ".", node: str = "local-dev") -> None:
    """Run a single collection cycle against the local SQLite store."""
    _uv(ctx, ["run", "filecollector", "run", "--once"], env=_sqlite_env(mount, node))


@task
def migrate_local(ctx: Context) -> None:
    """Create the snapshot tables in the local SQLite store."""
    _uv(ctx, ["run", "filecollector", "migrate"], env=_sqlite_env(".", "local-dev"))


@task(pre=[lint, typecheck, tests])
def ci(ctx: Context) -> None:
    """Run lint, type checks and tests in the same order as CI."""


namespace = Collection(sync, tests, lint, typecheck, collect_once, migrate_local, ci)
