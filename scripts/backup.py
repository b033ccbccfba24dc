"""Back up the encrypted settings blob when it is due.

Usage (from repo root):
  python -m scripts.backup --dest backups/ [--force]
"""
from __future__ import annotations
from datetime import datetime
from pathlib import Path
import click
from src.lib.settings_store import SecureSettingsStore
from src.lib.storage import FileStorage, StorageError
from config import settings

def last_backup_time(dest: Path):
	stamps = [p.stat().st_mtime for p in dest.glob(f"settings_*{settings.BACKUP_SUFFIX}")]
	return datetime.fromtimestamp(max(stamps)) if stamps else None

@click.command()
@click.option('--dest', type=click.Path(file_okay=False, path_type=Path), default=Path('backups'), help='Destination directory for backups.')
@click.option('--force', is_flag=True, help='Back up even if the configured frequency has not elapsed.')
def main(dest: Path, force: bool):
	store = SecureSettingsStore(FileStorage())
	if not force and not store.backup_due(last_backup_time(dest)):
		click.echo("Backup not due yet.")
		return
	try:
		target = store.backup(dest)
	except StorageError as e:
		click.echo(f"Nothing to back up: {e}")
		raise SystemExit(1)
	click.echo(f"Backup written: {target}")

if __name__ == '__main__':  # pragma: no cover
	main()
