"""
Command Line Interface for rkeprep.
"""
import logging
import sys
import traceback
from pathlib import Path

import click

from ..exceptions import ConfigWriteError, PrepException
from ..MANAGERS.credential_resolver import CredentialResolver
from ..MANAGERS.dependency_manager import DependencyManager
from ..MANAGERS.manifest_builder import ManifestBuilder
from ..MANAGERS.registry_bootstrap import RegistryBootstrap
from ..MANAGERS.transfer_executor import TransferExecutor
from ..MODELS.settings import PrepSettings, RegistrySettings
from ..MODELS.transfer import TransferDirection, TransferResult
from ..REGISTRY.image_store import LocalImageStore, save_manifest
from ..REGISTRY.registry_config import RegistryConfigEmitter
from ..RUNNERS.skopeo import SkopeoEngine

_LOGGER = logging.getLogger(__name__)

RULE = "=" * 42
LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def _fail(ctx: click.Context, err: Exception) -> None:
    """Reports an error on stderr and exits with status 1."""
    if ctx.find_root().params.get("log_level") == "DEBUG":
        traceback.print_exc(file=sys.stderr)
    click.echo(f"Error: {err}", err=True)
    ctx.exit(1)


def _settings(ctx: click.Context) -> PrepSettings:
    if 'settings' not in ctx.obj:
        ctx.obj['settings'] = PrepSettings.load(env_file=ctx.obj.get('env_file'))
    return ctx.obj['settings']


def _builder(ctx: click.Context) -> ManifestBuilder:
    return ManifestBuilder(_settings(ctx), client=ctx.obj.get('client'))


def _dependencies(ctx: click.Context) -> DependencyManager:
    return ctx.obj.get('dependencies') or DependencyManager()


def _executor(ctx: click.Context, store: LocalImageStore) -> TransferExecutor:
    settings = _settings(ctx)
    engine = ctx.obj.get('engine') or SkopeoEngine(
        binary=settings.skopeo_binary, timeout=settings.transfer_timeout
    )
    return TransferExecutor(engine, store, arch=settings.arch)


def _banner(*lines: str) -> None:
    click.echo(RULE)
    for line in lines:
        click.echo(line)
    click.echo(RULE)


def _summary(title: str, result: TransferResult, *extra: str) -> None:
    click.echo("")
    _banner(
        title,
        RULE,
        f"Total images: {result.attempted_count}",
        f"Successful: {result.success_count}",
        f"Failed: {result.failure_count}",
        *extra,
    )


@click.group(
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option('--log-level', type=click.Choice(LOG_LEVELS, case_sensitive=False),
              help='Enable logging at this level')
@click.option('--env-file', default='.env', show_default=True,
              help='File with RKEPREP_* settings')
@click.pass_context
def cli(ctx, log_level, env_file):
    """
    rkeprep - RKE2 air-gap image preparation.

    Discovers the latest stable RKE2 and CNI plugin images, downloads them
    with skopeo and pushes them to a private registry.
    """
    ctx.ensure_object(dict)
    if log_level:
        ctx.params['log_level'] = log_level.upper()
        logging.basicConfig(level=log_level.upper())
    ctx.obj.setdefault('env_file', env_file)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())
        ctx.exit(1)


@cli.command()
@click.option('--output', '-o', type=click.Path(dir_okay=False, path_type=Path),
              help='Also save the manifest snapshot to this file')
@click.pass_context
def prep(ctx, output):
    """Show the latest stable RKE2 and CNI plugin images."""
    try:
        settings = _settings(ctx)
        click.echo("Fetching latest stable RKE2 and CNI plugins release information...")
        manifest = _builder(ctx).build_manifest()
    except PrepException as e:
        _fail(ctx, e)
        return

    arch = settings.arch.upper()
    click.echo(f"Latest stable RKE2 version: {manifest.rke2_version}")
    click.echo(f"Latest stable CNI plugins version: {manifest.cni_version}")
    click.echo("")
    _banner(f"OCI Compliant {arch} Images for RKE2 {manifest.rke2_version}")
    click.echo("")
    for image in manifest.rke2_images:
        click.echo(image)
    click.echo("")
    _banner(f"Total images: {len(manifest.rke2_images)}")
    click.echo("")
    _banner(f"OCI Compliant {arch} Images for CNI Plugins {manifest.cni_version}")
    click.echo("")
    click.echo(manifest.cni_image)
    click.echo("")
    _banner("Total CNI plugin images: 1")

    if output:
        try:
            save_manifest(manifest, output)
        except OSError as e:
            _fail(ctx, e)
        click.echo(f"Manifest snapshot written to {output}")


@cli.command()
@click.argument('directory', required=False,
                type=click.Path(file_okay=False, path_type=Path))
@click.pass_context
def download(ctx, directory):
    """Download all images into DIRECTORY (default: ./downloads)."""
    try:
        settings = _settings(ctx)
        directory = directory or settings.download_dir
        _dependencies(ctx).ensure([settings.skopeo_binary])

        _banner("Image Download Process Started", f"Download directory: {directory}")
        click.echo("")
        manifest = _builder(ctx).build_manifest()
        click.echo(f"Latest stable RKE2 version: {manifest.rke2_version}")
        click.echo(f"Latest stable CNI plugins version: {manifest.cni_version}")

        store = LocalImageStore(directory)
        store.create()
        store.save_manifest(manifest)
        click.echo(f"Total images to download: {len(manifest)}")
        click.echo("")

        result = _executor(ctx, store).execute(manifest, TransferDirection.PULL)
    except (PrepException, OSError) as e:
        _fail(ctx, e)
        return

    _summary("Download Summary", result, f"Download directory: {directory}")
    ctx.exit(result.exit_code)


@cli.command()
@click.option('--registry', 'registry_url', metavar='URL',
              help='Registry to push to, e.g. registry.example.com:5000 (required)')
@click.option('--no-auth', is_flag=True, help='Registry does not require authentication')
@click.option('--password-file', type=click.Path(dir_okay=False, path_type=Path),
              help='Path to a base64-encoded password file')
@click.option('--username', help='Registry username (prompted if omitted)')
@click.option('--download-dir', type=click.Path(file_okay=False, path_type=Path),
              help='Directory holding downloaded images (default: ./downloads)')
@click.option('--refresh', is_flag=True,
              help='Rediscover the latest releases instead of using the saved manifest')
@click.option('--config-out', type=click.Path(dir_okay=False, path_type=Path),
              help='Where to write the registry mirror configuration')
@click.pass_context
def push(ctx, registry_url, no_auth, password_file, username, download_dir, refresh, config_out):
    """Push downloaded images to a private registry."""
    if not registry_url:
        click.echo("Error: --registry flag is required", err=True)
        click.echo(ctx.get_usage(), err=True)
        ctx.exit(1)

    try:
        settings = _settings(ctx)
        download_dir = download_dir or settings.download_dir
        if not download_dir.is_dir():
            click.echo(f"Error: Downloads directory does not exist: {download_dir}", err=True)
            click.echo("Please run download first to download the images.", err=True)
            ctx.exit(1)
        _dependencies(ctx).ensure([settings.skopeo_binary])

        resolver = ctx.obj.get('resolver') or CredentialResolver()
        credentials = resolver.resolve(no_auth, password_file, username)

        _banner(
            "Image Push Process Started",
            f"Registry: {registry_url}",
            f"Source directory: {download_dir}",
            f"Authentication: {'Disabled' if credentials is None else 'Enabled'}",
        )
        click.echo("")

        store = LocalImageStore(download_dir)
        manifest = None if refresh else store.load_manifest()
        if manifest is None:
            _LOGGER.info("No manifest snapshot used; discovering latest releases")
            manifest = _builder(ctx).build_manifest()
        click.echo(f"RKE2 version: {manifest.rke2_version}")
        click.echo(f"CNI plugins version: {manifest.cni_version}")
        click.echo(f"Total images to push: {len(manifest)}")
        click.echo("")

        result = _executor(ctx, store).execute(
            manifest, TransferDirection.PUSH, registry_url, credentials
        )
    except PrepException as e:
        _fail(ctx, e)
        return

    _summary("Push Summary", result, f"Registry: {registry_url}")

    config_path = config_out or settings.registry_config_path
    try:
        written = RegistryConfigEmitter().emit(registry_url, credentials, config_path)
        click.echo(f"Registry mirror configuration written to {written}")
        if credentials is not None:
            click.echo("Replace the password placeholder before copying it to "
                       "/etc/rancher/rke2/registries.yaml on each node.")
    except ConfigWriteError as e:
        click.echo(f"Warning: {e}", err=True)

    ctx.exit(result.exit_code)


@cli.command()
@click.pass_context
def registry(ctx):
    """Run a private registry container with docker."""
    try:
        settings = ctx.obj.get('registry_settings') or RegistrySettings.load(
            env_file=ctx.obj.get('env_file')
        )
        bootstrap = ctx.obj.get('bootstrap') or RegistryBootstrap(
            settings, dependencies=_dependencies(ctx)
        )
        bootstrap.deploy()
    except PrepException as e:
        _fail(ctx, e)


def main(argv=None):
    """
    Main entry point for the CLI.

    Usage errors such as an unknown command exit with status 1.
    """
    try:
        rv = cli.main(args=argv, prog_name="rkeprep", obj={}, standalone_mode=False)
    except click.UsageError as e:
        e.show()
        sys.exit(1)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except click.Abort:
        click.echo("Aborted!", err=True)
        sys.exit(1)
    sys.exit(rv if isinstance(rv, int) else 0)


if __name__ == '__main__':
    main()
