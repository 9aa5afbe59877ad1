"""Command line access to a bucket through the filesystem adapter."""
import dataclasses
import logging
import shutil
import sys
from dataclasses import dataclass
from typing import Callable, Optional

import typer

from .errors import CredentialsNotFoundError, PathNotFoundError
from .settings import AdapterSettings, SettingsStorage
from .ufs import S3UnderFileSystem

SUCCESS_EXIT_CODE = 0
FAILURE_EXIT_CODE = 1
USAGE_EXIT_CODE = 2


@dataclass(frozen=True)
class CliConfig:
    """Settings resolved from the global options."""

    settings: AdapterSettings


def mount(settings: AdapterSettings) -> S3UnderFileSystem:
    return S3UnderFileSystem.create(settings)


app = typer.Typer(no_args_is_help=True, help="Browse and modify a bucket as a directory tree")


@app.callback()
def configure(
    ctx: typer.Context,
    bucket: Optional[str] = typer.Option(None, help="Bucket to mount (overrides saved settings)"),
    endpoint_url: Optional[str] = typer.Option(None, help="Custom S3 endpoint"),
    profile: Optional[str] = typer.Option(None, help="Saved connection profile name"),
    settings_path: Optional[str] = typer.Option(None, "--settings", help="Path of the JSON settings file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Resolve settings shared by all commands."""

    settings = SettingsStorage(settings_path).load()
    overrides = {}
    if bucket:
        overrides["bucket"] = bucket
    if endpoint_url:
        overrides["endpoint_url"] = endpoint_url
    if profile:
        overrides["profile_name"] = profile
    logging.getLogger("s3_ufs").setLevel(logging.DEBUG if verbose else logging.WARNING)
    ctx.obj = CliConfig(settings=dataclasses.replace(settings, **overrides))


def _run(ctx: typer.Context, action: Callable[[S3UnderFileSystem], bool]) -> None:
    """Mount the bucket, run one action and map its outcome to an exit code."""

    config = ctx.obj
    if not isinstance(config, CliConfig):
        raise RuntimeError("CLI configuration not initialized")
    if not config.settings.bucket:
        typer.echo("error: a bucket is required (--bucket or saved settings)", err=True)
        raise typer.Exit(code=USAGE_EXIT_CODE)
    try:
        ufs = mount(config.settings)
    except CredentialsNotFoundError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=USAGE_EXIT_CODE) from exc
    try:
        ok = action(ufs)
    except PathNotFoundError as exc:
        typer.echo(f"error: {exc}: no such file or directory", err=True)
        raise typer.Exit(code=FAILURE_EXIT_CODE) from exc
    raise typer.Exit(code=SUCCESS_EXIT_CODE if ok else FAILURE_EXIT_CODE)


@app.command("ls")
def ls_command(
    ctx: typer.Context,
    path: str = typer.Argument("/", help="Directory to list"),
    recursive: bool = typer.Option(False, "--recursive", "-r"),
) -> None:
    """List a directory."""

    def action(ufs: S3UnderFileSystem) -> bool:
        if not ufs.is_directory(path):
            typer.echo(f"error: {path}: not a directory", err=True)
            return False
        for child in ufs.list_children(path, recursive=recursive):
            typer.echo(child)
        return True

    _run(ctx, action)


@app.command("stat")
def stat_command(ctx: typer.Context, path: str = typer.Argument(..., help="Path to inspect")) -> None:
    """Show type, size, mtime, owner and mode."""

    def action(ufs: S3UnderFileSystem) -> bool:
        kind = "directory" if ufs.is_directory(path) else "file"
        status = None if ufs.keys.is_root(path) else ufs.get_status(path)
        typer.echo(f"path:     {ufs.keys.to_uri(path)}")
        typer.echo(f"type:     {kind}")
        if status is not None:
            typer.echo(f"size:     {status.size}")
            typer.echo(f"modified: {status.last_modified}")
        typer.echo(f"owner:    {ufs.get_owner(path)}")
        typer.echo(f"mode:     {ufs.get_mode(path):o}")
        return True

    _run(ctx, action)


@app.command("mkdir")
def mkdir_command(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Directory to create"),
    parents: bool = typer.Option(False, "--parents", "-p", help="Create missing ancestors"),
) -> None:
    """Create a directory marker."""

    _run(ctx, lambda ufs: ufs.mkdirs(path) if parents else ufs.mkdir(path))


@app.command("rm")
def rm_command(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="File or directory to delete"),
    recursive: bool = typer.Option(False, "--recursive", "-r"),
) -> None:
    """Delete a file or directory."""

    def action(ufs: S3UnderFileSystem) -> bool:
        if ufs.is_file(path):
            return ufs.delete(path)
        if ufs.is_directory(path):
            return ufs.delete_directory(path, recursive=recursive)
        typer.echo(f"error: {path}: no such file or directory", err=True)
        return False

    _run(ctx, action)


@app.command("cp")
def cp_command(ctx: typer.Context, src: str = typer.Argument(...), dst: str = typer.Argument(...)) -> None:
    """Server-side copy."""

    _run(ctx, lambda ufs: ufs.copy(src, dst))


@app.command("mv")
def mv_command(ctx: typer.Context, src: str = typer.Argument(...), dst: str = typer.Argument(...)) -> None:
    """Copy, then delete the source."""

    _run(ctx, lambda ufs: ufs.rename(src, dst))


@app.command("cat")
def cat_command(ctx: typer.Context, path: str = typer.Argument(..., help="Object to print")) -> None:
    """Write an object to stdout."""

    def action(ufs: S3UnderFileSystem) -> bool:
        stream = ufs.open(path)
        if stream is None:
            return False
        try:
            shutil.copyfileobj(stream, typer.get_binary_stream("stdout"))
        finally:
            stream.close()
        return True

    _run(ctx, action)


def main() -> None:
    logging.basicConfig(
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app(prog_name="s3_ufs")


if __name__ == "__main__":
    main()
