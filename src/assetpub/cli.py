"""CLI interface for assetpub"""

import logging
from pathlib import Path
from typing import Optional

import click

from assetpub.application.launcher_env import FORMATTERS, LauncherEnvironment
from assetpub.application.publish_service import AssetPublisher
from assetpub.domain.models.publish_request import PublishRequest
from assetpub.infrastructure.config.config_manager import ConfigManager
from assetpub.infrastructure.factory import BackendFactory
from assetpub.infrastructure.retry import is_transient_error

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration"""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )
    logging.getLogger().setLevel(level)
    # urllib3 logs every connection at DEBUG
    logging.getLogger("urllib3").setLevel(logging.DEBUG if verbose else logging.WARNING)


def _die(message: str, verbose: bool = False, exc: Optional[Exception] = None) -> None:
    """Exit with a user-friendly error message"""
    if exc is not None:
        logger.error(message, exc_info=verbose)
    else:
        logger.error(message)
    raise click.ClickException(message)


def _create_publisher(config_manager: ConfigManager, dry_run: bool, strict_retry: bool) -> AssetPublisher:
    """Create asset publisher from config

    Args:
        config_manager: Configuration manager
        dry_run: Use in-memory backends instead of the configured ones
        strict_retry: Don't retry auth errors and other client errors

    Returns:
        AssetPublisher instance
    """
    config = config_manager.config
    if dry_run:
        logger.info("Dry run: blobs and assets are kept in memory")
        config = config.model_copy(
            update={
                "storage": config.storage.model_copy(update={"kind": "memory"}),
                "database": config.database.model_copy(update={"kind": "memory"}),
            }
        )

    factory = BackendFactory(config)
    return AssetPublisher(
        primary_store=factory.create_primary_store(),
        mirror_store=factory.create_mirror_store(),
        registry=factory.create_registry(),
        build=config_manager.require_build(),
        cdn_url=config.storage.primary.cdn_url,
        mirror_cdn_url=config.storage.mirror.cdn_url,
        retry_policy=config.retry,
        retry_on=is_transient_error if strict_retry else None,
    )


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option(
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to .assetpub.yml config file",
)
@click.pass_context
def cli(ctx, verbose: bool, config: Path):
    """assetpub - Release asset publishing for build pipelines"""
    ctx.ensure_object(dict)
    setup_logging(verbose)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose


@cli.command("create-asset")
@click.argument("product", type=click.Choice(["client", "server", "web", "cli"]))
@click.argument("os", type=click.Choice(["win32", "alpine", "linux", "darwin"]))
@click.argument("arch", type=str)
@click.argument("type", type=str)
@click.argument("name", type=str)
@click.argument("file_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--dry-run", is_flag=True, help="Don't upload or register anything")
@click.option(
    "--strict-retry",
    is_flag=True,
    help="Only retry network errors, 429 and 5xx (default: retry every error)",
)
@click.pass_context
def create_asset(
    ctx,
    product: str,
    os: str,
    arch: str,
    type: str,
    name: str,
    file_path: Path,
    dry_run: bool,
    strict_retry: bool,
):
    """Upload an artifact and register it in the asset database.

    \b
    PRODUCT: client, server, web or cli
    OS: win32, alpine, linux or darwin
    ARCH: target architecture (x64, arm64, ...)
    TYPE: artifact type (archive, setup, user-setup, deb-package, ...)
    NAME: file name the artifact is published under
    FILE_PATH: local path of the artifact
    """
    verbose = ctx.obj.get("verbose", False)

    try:
        config_manager = ConfigManager(config_path=ctx.obj.get("config_path"))
        publisher = _create_publisher(config_manager, dry_run, strict_retry)
        asset = publisher.publish(
            PublishRequest(
                product=product,
                os=os,
                arch=arch,
                type=type,
                file_name=name,
                file_path=file_path,
            )
        )
        click.echo(f"Published {asset.platform} ({asset.type}): {asset.url}")

    except click.ClickException:
        raise
    except Exception as e:
        _die(f"Fatal error: {e}", verbose=verbose, exc=e)


@cli.command("prepare-cli")
@click.option(
    "--root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Repository root containing product.json",
)
@click.option("--quality", type=str, help="Build quality. Overrides config/RELEASE_QUALITY.")
@click.option(
    "--output",
    type=click.Choice(sorted(FORMATTERS), case_sensitive=False),
    default="vso",
    show_default=True,
    help="json: list of [name, value] pairs; vso: pipeline variable commands",
)
@click.option("--package-version", type=str, help="Version to embed (default: from package.json)")
@click.pass_context
def prepare_cli(ctx, root: Path, quality: Optional[str], output: str, package_version: Optional[str]):
    """Print build environment variables for the CLI launcher."""
    verbose = ctx.obj.get("verbose", False)

    try:
        if quality is None:
            config_manager = ConfigManager(config_path=ctx.obj.get("config_path"))
            quality = config_manager.get_build_config().quality

        environment = LauncherEnvironment(root, quality=quality, package_version=package_version)
        rendered = FORMATTERS[output.lower()](environment.defined_variables())
        if rendered:
            click.echo(rendered)

    except click.ClickException:
        raise
    except Exception as e:
        _die(f"Fatal error: {e}", verbose=verbose, exc=e)


def main():
    """Main entry point"""
    cli(obj={})


if __name__ == "__main__":
    main()
