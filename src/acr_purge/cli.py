import asyncio
import logging

import click

from .core.auth import basic_auth, bearer_auth, login_url
from .core.types import PurgeOptions, RegistryConfig
from .exceptions import PurgeError
from .registry import purge as run_purge
from .registry import unarchive as run_unarchive

PURGE_EXAMPLES = """
\b
Delete all tags that are older than 1 day
  acr-purge -r MyRegistry purge --repository MyRepository --ago 1d
\b
Delete all tags that are older than 1 day and begin with hello
  acr-purge -r MyRegistry purge --repository MyRepository --ago 1d --filter "^hello.*"
\b
Delete all dangling manifests
  acr-purge -r MyRegistry purge --repository MyRepository --dangling
"""


class Registry:
    def __init__(
        self,
        registry: str,
        username: str | None = None,
        password: str | None = None,
        token: str | None = None,
        debug: bool = False,
    ):
        logging.basicConfig(level=logging.DEBUG if debug else logging.INFO)
        auth = ""
        if token:
            auth = bearer_auth(token)
        elif username:
            auth = basic_auth(username, password or "")
        self.config = RegistryConfig(login_url=login_url(registry), auth=auth)


def _run(coro):
    try:
        return asyncio.run(coro)
    except PurgeError as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.option("-r", "--registry", help="Registry name", envvar="ACR_REGISTRY", required=True)
@click.option("-u", "--username", help="Registry username", envvar="ACR_USERNAME", default=None)
@click.option("-p", "--password", help="Registry password", envvar="ACR_PASSWORD", default=None)
@click.option(
    "-t", "--token", help="Registry access token, used instead of a password", envvar="ACR_TOKEN"
)
@click.option("-d", "--debug", help="Debug output", is_flag=True)
@click.pass_context
def cli(ctx, registry, username, password, token, debug):
    """Untag old images and delete dangling manifests of a registry."""
    ctx.obj = Registry(
        registry=registry, username=username, password=password, token=token, debug=debug
    )


@cli.command(epilog=PURGE_EXAMPLES)
@click.option("--repository", help="The repository which will be purged", required=True)
@click.option(
    "--ago",
    default="1d",
    show_default=True,
    help="Tags last updated before this long ago are deleted, e.g. 1d, 3d12h, 90m",
)
@click.option(
    "-f",
    "--filter",
    "filter_",
    default=None,
    help="Regular expression; only matching tags older than --ago are deleted",
)
@click.option("--dangling", is_flag=True, help="Just remove dangling manifests")
@click.option(
    "--archive-repository",
    default=None,
    help="Move manifests to this repository instead of deleting them",
)
@click.option(
    "--continue-on-error",
    is_flag=True,
    help="Log failed deletions and keep going instead of stopping",
)
@click.option("--dry-run", is_flag=True, help="Only print what would be deleted")
@click.pass_context
def purge(ctx, repository, ago, filter_, dangling, archive_repository, continue_on_error, dry_run):
    """Delete images from a registry."""
    obj: Registry = ctx.ensure_object(Registry)
    options = PurgeOptions(
        repository=repository,
        ago=ago,
        filter=filter_,
        archive_repository=archive_repository,
        dangling_only=dangling,
        continue_on_error=continue_on_error,
        dry_run=dry_run,
    )
    result = _run(run_purge(obj.config, options, report=click.echo))
    if not result.ok:
        raise click.ClickException(f"{len(result.failed)} item(s) could not be purged")


@cli.command()
@click.option("--archive-repository", required=True, help="Repository holding archived images")
@click.option("--reference", required=True, help="Digest of the archived manifest")
@click.option("--tag-name", default=None, help="Restore under this tag instead of the original ones")
@click.option("--repository", default=None, help="Restore into this repository instead of the original one")
@click.pass_context
def unarchive(ctx, archive_repository, reference, tag_name, repository):
    """Restore an image moved away by purge."""
    obj: Registry = ctx.ensure_object(Registry)
    _run(
        run_unarchive(
            obj.config,
            archive_repository,
            reference,
            new_tag_name=tag_name,
            repository=repository,
            report=click.echo,
        )
    )
