import asyncio
import json
import logging
import signal
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import click
from tqdm import tqdm

from .auth.google_drive import GoogleDriveAuthProvider
from .config import ConfigManager, config_to_dict
from .drive.client import GoogleDriveClient
from .drive.items import DriveItem, format_size
from .migration.engine import MigrationEngine, MigrationResult
from .migration.outcome import OutcomeEntry, OutcomeStatus
from .migration.progress import ProgressSnapshot
from .migration.verify import Verifier
from .utils.exceptions import ConfigurationError, MigratorError
from .utils.logger import setup_logging
from .utils.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


@click.group()
@click.version_option(package_name="drive-migrator")
def main() -> None:
    pass


@main.command()
def config() -> None:
    """Create or update the configuration file."""
    mgr = ConfigManager()

    if mgr.exists():
        click.echo(f"Configuration file found: {mgr.config_path}")
        if not click.confirm("Overwrite existing configuration?", default=False):
            click.echo("Aborted.")
            return
        try:
            mgr.load()
        except ConfigurationError as e:
            click.echo(f"Could not read existing configuration: {e}")
            click.echo("Starting from defaults.")
    else:
        click.echo("No configuration file found. Creating a new one.")

    click.echo("\n--- Source account ---")
    mgr.get_or_prompt("source.credentials_path", "Path to Google OAuth client JSON")
    mgr.get_or_prompt("source.token_path", "Path to source token JSON")

    click.echo("\n--- Destination account ---")
    mgr.get_or_prompt(
        "destination.credentials_path", "Path to Google OAuth client JSON"
    )
    mgr.get_or_prompt("destination.token_path", "Path to destination token JSON")

    click.echo("\n--- Migration ---")
    mgr.get_or_prompt("migration.dest_folder_id", "Destination folder ID")
    mgr.get_or_prompt("migration.window_size", "Items migrated in parallel", int)

    try:
        mgr.config.validate()
    except ConfigurationError as e:
        click.echo(f"\nValidation error: {e}", err=True)
        raise SystemExit(1)

    mgr.save()
    click.echo(f"\nConfiguration saved to {mgr.config_path}")


@main.command()
def show() -> None:
    """Print the current configuration."""
    mgr = ConfigManager()

    if not mgr.exists():
        click.echo(f"No configuration file found at {mgr.config_path}")
        click.echo("Run 'drive-migrator config' to create one.")
        raise SystemExit(1)

    try:
        cfg = mgr.load()
    except ConfigurationError as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        raise SystemExit(1)

    click.echo(f"Configuration file: {mgr.config_path}\n")
    click.echo(json.dumps(config_to_dict(cfg), indent=2))

    try:
        cfg.validate()
    except ConfigurationError as e:
        click.echo(f"\n{e}", err=True)
        click.echo("Run 'drive-migrator config' to fix it.", err=True)
        raise SystemExit(1)


def _load_config() -> ConfigManager:
    mgr = ConfigManager()
    if not mgr.exists():
        click.echo("No configuration found. Run 'drive-migrator config' first.")
        raise SystemExit(1)
    try:
        mgr.load().validate()
    except ConfigurationError as e:
        click.echo(f"Configuration error: {e}", err=True)
        raise SystemExit(1)
    return mgr


def _authenticate(cfg: ConfigManager, account: str) -> GoogleDriveClient:
    creds_path = Path(cfg.get(f"{account}.credentials_path")).expanduser()
    token_path = Path(cfg.get(f"{account}.token_path")).expanduser()

    auth_provider = GoogleDriveAuthProvider(
        credentials_path=creds_path,
        token_path=token_path,
        account=account,
    )

    click.echo(f"Authenticating {account} Google account...")
    if not auth_provider.authenticate():
        click.echo(f"{account.capitalize()} authentication failed.", err=True)
        raise SystemExit(1)

    client = GoogleDriveClient(credentials=auth_provider.get_credentials(), label=account)
    client.connect()
    return client


def _create_rate_limiter(cfg: ConfigManager) -> RateLimiter:
    migration_cfg = cfg.config.migration
    return RateLimiter(
        requests_per_second=migration_cfg.requests_per_second,
        burst_size=migration_cfg.burst_size,
    )


async def _resolve_selection(
    engine: MigrationEngine,
    item_ids: Sequence[str],
    folder_id: Optional[str],
    select_all: bool,
) -> List[DriveItem]:
    if folder_id is None:
        return await engine.resolve_selection(item_ids)

    children = await engine.list_folder(folder_id)
    if select_all:
        return children

    by_id = {item.id: item for item in children}
    unknown = [item_id for item_id in item_ids if item_id not in by_id]
    if unknown:
        raise click.UsageError(
            f"Items not found in folder {folder_id}: {', '.join(unknown)}"
        )
    return [by_id[item_id] for item_id in dict.fromkeys(item_ids)]


def _check_selection_options(
    item_ids: Tuple[str, ...], folder_id: Optional[str], select_all: bool
) -> None:
    if select_all and folder_id is None:
        raise click.UsageError("--all requires --folder-id")
    if not item_ids and not select_all:
        raise click.UsageError("Select at least one item with --item-id or --all.")


def _print_summary(snapshot: ProgressSnapshot) -> None:
    click.echo("\n--- Migration Summary ---")
    click.echo(f"  Total items:    {snapshot.total}")
    click.echo(f"  Processed:      {snapshot.processed}")
    click.echo(f"  Succeeded:      {snapshot.succeeded}")
    click.echo(f"  Failed:         {snapshot.failed}")
    click.echo(f"  Skipped:        {snapshot.skipped}")


def _print_failures(result: MigrationResult) -> None:
    failed = result.by_status(OutcomeStatus.FAILED)
    if not failed:
        return
    click.echo("\nFailed items:")
    for entry in failed:
        click.echo(f"  {entry.source_name} ({entry.source_id})")
        click.echo(f"    Reason: {entry.error}")


async def _migrate_until_cancelled(
    engine: MigrationEngine,
    selection: Sequence[DriveItem],
    dest_folder_id: str,
) -> MigrationResult:
    cancel_event = asyncio.Event()

    def request_cancel() -> None:
        if not cancel_event.is_set():
            click.echo(
                "\nCancelling: waiting for in-flight items to finish...", err=True
            )
            cancel_event.set()

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, request_cancel)
        handler_installed = True
    except (NotImplementedError, RuntimeError):
        logger.debug("Signal handlers unavailable, Ctrl-C will abort immediately")
        handler_installed = False

    try:
        return await engine.migrate(selection, dest_folder_id, cancel_event)
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)


def _run_with_progress(
    engine: MigrationEngine,
    selection: Sequence[DriveItem],
    dest_folder_id: str,
) -> MigrationResult:
    progress_bar = tqdm(total=len(selection), desc="Migrating", unit="item")

    def on_progress(entry: OutcomeEntry, snapshot: ProgressSnapshot) -> None:
        progress_bar.update(1)
        progress_bar.set_postfix_str(f"{entry.source_name}: {entry.status.value}")

    engine.set_progress_callback(on_progress)
    try:
        return asyncio.run(
            _migrate_until_cancelled(engine, selection, dest_folder_id)
        )
    finally:
        engine.set_progress_callback(None)
        progress_bar.close()


def _report_missing(missing: List[DriveItem]) -> None:
    if not missing:
        click.echo("Verification passed: every selected item exists at the destination.")
        return
    click.echo(f"Verification found {len(missing)} missing items:")
    for item in missing:
        click.echo(f"  {item.name} ({item.id})")


@main.command()
@click.option("--folder-id", default="root", show_default=True, help="Source folder ID")
def browse(folder_id: str) -> None:
    """List the contents of a source folder."""
    cfg = _load_config()
    source_client = _authenticate(cfg, "source")

    try:
        items = source_client.list_children(folder_id)
        folder_name = source_client.get_folder_name(folder_id)
    except MigratorError as e:
        click.echo(f"Could not list folder {folder_id}: {e}", err=True)
        raise SystemExit(1)

    click.echo(f"\n{folder_name} ({len(items)} items)\n")
    for item in sorted(items, key=lambda i: (not i.is_container, i.name.lower())):
        kind = "[DIR]" if item.is_container else "     "
        size = "" if item.is_container else format_size(item.size)
        click.echo(f"  {kind} {item.name:<50} {size:>10}  {item.id}")


@main.command()
@click.option("--item-id", "item_ids", multiple=True, help="Source item ID to migrate")
@click.option("--folder-id", default=None, help="Source folder the items are in")
@click.option("--all", "select_all", is_flag=True, help="Migrate every item in --folder-id")
@click.option("--dest-folder-id", default=None, help="Destination folder ID")
@click.option("--window-size", type=int, default=None, help="Items migrated in parallel")
@click.option("--verify", "run_verify", is_flag=True, help="Verify after migrating")
@click.option(
    "--export",
    "export_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the outcome log to a JSON file",
)
@click.option("--verbose", is_flag=True, help="Enable debug logging")
def migrate(
    item_ids: Tuple[str, ...],
    folder_id: Optional[str],
    select_all: bool,
    dest_folder_id: Optional[str],
    window_size: Optional[int],
    run_verify: bool,
    export_path: Optional[Path],
    verbose: bool,
) -> None:
    """Copy the selected items into the destination account."""
    if verbose:
        setup_logging(level="DEBUG")
    _check_selection_options(item_ids, folder_id, select_all)

    cfg = _load_config()
    migration_cfg = cfg.config.migration
    dest_folder_id = dest_folder_id or migration_cfg.dest_folder_id
    if window_size is None:
        window_size = migration_cfg.window_size

    source_client = _authenticate(cfg, "source")
    dest_client = _authenticate(cfg, "destination")
    rate_limiter = _create_rate_limiter(cfg)

    try:
        engine = MigrationEngine(
            source_client=source_client,
            dest_client=dest_client,
            window_size=window_size,
            provenance_key=migration_cfg.provenance_key,
            rate_limiter=rate_limiter,
        )
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--window-size")

    try:
        selection = asyncio.run(
            _resolve_selection(engine, item_ids, folder_id, select_all)
        )
    except MigratorError as e:
        click.echo(f"Could not resolve selection: {e}", err=True)
        raise SystemExit(1)

    if not selection:
        click.echo("Nothing to migrate: the selection is empty.")
        return

    click.echo(f"Migrating {len(selection)} items into {dest_folder_id}...")
    try:
        result = _run_with_progress(engine, selection, dest_folder_id)
    except MigratorError as e:
        click.echo(f"Migration could not start: {e}", err=True)
        raise SystemExit(1)

    if result.cancelled:
        click.echo("\nMigration cancelled before all items were started.")
    _print_summary(result.snapshot)
    _print_failures(result)

    export_failed = False
    if export_path is not None:
        try:
            count = engine.outcome_log.export_to_json(export_path)
        except OSError as e:
            click.echo(
                f"\nCould not export outcome log to {export_path}: {e}", err=True
            )
            export_failed = True
        else:
            click.echo(f"\nExported {count} outcome entries to {export_path}")

    if run_verify:
        click.echo("\nVerifying destination...")
        verifier = Verifier(
            dest_client,
            provenance_key=migration_cfg.provenance_key,
            rate_limiter=rate_limiter,
        )
        try:
            missing = asyncio.run(verifier.find_missing(selection, dest_folder_id))
        except MigratorError as e:
            click.echo(f"Verification failed: {e}", err=True)
            raise SystemExit(1)
        _report_missing(missing)

    if export_failed:
        raise SystemExit(1)

@main.command()
@click.option("--item-id", "item_ids", multiple=True, help="Source item ID to check")
@click.option("--folder-id", default=None, help="Source folder the items are in")
@click.option("--all", "select_all", is_flag=True, help="Check every item in --folder-id")
@click.option("--dest-folder-id", default=None, help="Destination folder ID")
def verify(
    item_ids: Tuple[str, ...],
    folder_id: Optional[str],
    select_all: bool,
    dest_folder_id: Optional[str],
) -> None:
    """Check that every selected item has a tagged copy at the destination."""
    _check_selection_options(item_ids, folder_id, select_all)

    cfg = _load_config()
    migration_cfg = cfg.config.migration
    dest_folder_id = dest_folder_id or migration_cfg.dest_folder_id

    source_client = _authenticate(cfg, "source")
    dest_client = _authenticate(cfg, "destination")
    rate_limiter = _create_rate_limiter(cfg)

    engine = MigrationEngine(
        source_client=source_client,
        dest_client=dest_client,
        provenance_key=migration_cfg.provenance_key,
        rate_limiter=rate_limiter,
    )
    verifier = Verifier(
        dest_client,
        provenance_key=migration_cfg.provenance_key,
        rate_limiter=rate_limiter,
    )

    try:
        selection = asyncio.run(
            _resolve_selection(engine, item_ids, folder_id, select_all)
        )
        missing = asyncio.run(verifier.find_missing(selection, dest_folder_id))
    except MigratorError as e:
        click.echo(f"Verification failed: {e}", err=True)
        raise SystemExit(1)

    _report_missing(missing)
    if missing:
        raise SystemExit(2)


@main.command()
@click.option("--folder-id", default="root", show_default=True, help="Source folder ID")
@click.option("--dest-folder-id", default=None, help="Destination folder ID")
def validate(folder_id: str, dest_folder_id: Optional[str]) -> None:
    """Run pre-flight checks before migration."""
    failed = False

    # 1. Config
    try:
        cfg = _load_config()
        click.echo("[PASS] Configuration loaded")
    except SystemExit:
        click.echo("[FAIL] Configuration")
        raise SystemExit(1)

    dest_folder_id = dest_folder_id or cfg.config.migration.dest_folder_id

    # 2-3. Each account and the folder it is used with
    for account, target in (("source", folder_id), ("destination", dest_folder_id)):
        try:
            client = _authenticate(cfg, account)
            click.echo(f"[PASS] {account.capitalize()} authentication")
        except SystemExit:
            click.echo(f"[FAIL] {account.capitalize()} authentication")
            click.echo(f"[SKIP] {account.capitalize()} folder access")
            failed = True
            continue

        try:
            client.list_children(target)
            click.echo(f"[PASS] {account.capitalize()} folder access")
        except MigratorError as e:
            click.echo(f"[FAIL] {account.capitalize()} folder access: {e}")
            failed = True

    if failed:
        click.echo("\nValidation failed.")
        raise SystemExit(1)
    else:
        click.echo("\nAll checks passed.")


@main.command()
@click.option(
    "--account",
    type=click.Choice(["source", "destination", "all"]),
    default="all",
    show_default=True,
    help="Which account to sign out of",
)
def logout(account: str) -> None:
    """Remove cached tokens so the next run can sign in as another account."""
    cfg = _load_config()
    accounts = ("source", "destination") if account == "all" else (account,)
    for name in accounts:
        _auth_provider(cfg, name).clear_token()
        click.echo(f"Signed out of the {name} account.")


if __name__ == "__main__":
    main()
