"""Admin CLI implemented with click.

Thin wrappers over the library: inspect and change settings, register
categories, back up the settings blob and round-trip text through the
crypto engine.
"""
from __future__ import annotations
import json, logging, click
from pathlib import Path
from config import settings
from src.lib.crypto import JournalCrypto, CryptoError
from src.lib.categories import CategoryGate, JsonCategoryRepository
from src.lib.settings_store import SecureSettingsStore
from src.lib.storage import FileStorage, StorageError

# field name on the command line -> SecureSettingsStore updater, value type
SETTING_FIELDS = {
	'text-size': ('update_text_size', int),
	'auto-save-interval': ('update_auto_save_interval', int),
	'backup-frequency': ('update_backup_frequency', int),
	'theme': ('update_theme', str),
	'default-category': ('update_default_category', str),
}

def _store() -> SecureSettingsStore:
	return SecureSettingsStore(FileStorage())

@click.group()
@click.option('--verbose', is_flag=True, help='Log debug output to stderr.')
def cli(verbose):
	"""journal-guard admin CLI"""
	logging.basicConfig(level=logging.DEBUG if verbose else settings.LOG_LEVEL, format='%(levelname)s %(name)s: %(message)s')

@cli.group('settings')
def settings_group():
	"""Inspect and change encrypted application settings.

	Set JOURNAL_SETTINGS_PASSPHRASE to keep them confidential; the default
	passphrase is derived from user and host name and is easy to guess.
	"""

@settings_group.command('show')
def settings_show():
	click.echo(json.dumps(_store().load().to_dict(), indent=2))

@settings_group.command('set')
@click.argument('field', type=click.Choice(sorted(SETTING_FIELDS)))
@click.argument('value')
def settings_set(field, value):
	"""Validate and persist a single setting."""
	method, kind = SETTING_FIELDS[field]
	try:
		value = kind(value)
	except ValueError:
		click.echo(f'Rejected: {field} expects an integer.')
		raise SystemExit(1)
	if getattr(_store(), method)(value):
		click.echo(f'Updated {field}.')
	else:
		click.echo(f'Rejected: invalid value for {field}.')
		raise SystemExit(1)

@cli.group()
def category():
	"""Manage journal categories."""

@category.command('add')
@click.argument('name')
def category_add(name):
	gate = CategoryGate(JsonCategoryRepository(FileStorage()))
	if gate.add_category(name):
		click.echo(f'Added category {name.strip()}.')
	else:
		click.echo('Rejected: unsafe or invalid category name.')
		raise SystemExit(1)

@category.command('list')
def category_list():
	try:
		for name in JsonCategoryRepository(FileStorage()).list_categories():
			click.echo(name)
	except StorageError as e:
		click.echo(f'Error: {e}')
		raise SystemExit(1)

@cli.command()
@click.option('--dest', type=click.Path(file_okay=False, path_type=Path), default=Path('backups'), help='Destination directory for backups.')
def backup(dest):
	"""Copy the encrypted settings blob to a timestamped backup file."""
	try:
		click.echo(f'Backup written: {_store().backup(dest)}')
	except StorageError as e:
		click.echo(f'Error: {e}')
		raise SystemExit(1)

@cli.command()
@click.argument('backup_file', type=click.Path(exists=True, dir_okay=False, path_type=Path))
def restore(backup_file):
	"""Restore settings from a backup (only if it authenticates)."""
	if _store().restore(backup_file):
		click.echo('Settings restored.')
	else:
		click.echo('Error: backup rejected.')
		raise SystemExit(1)

@cli.command()
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--text', prompt=True)
def encrypt(password, text):
	"""Encrypt text and print the base64 blob."""
	try:
		click.echo(JournalCrypto().encrypt(text, password))
	except CryptoError as e:
		click.echo(f'Error: {e}')
		raise SystemExit(1)

@cli.command()
@click.argument('token')
@click.option('--password', prompt=True, hide_input=True)
def decrypt(token, password):
	"""Decrypt a blob produced by `encrypt`."""
	try:
		click.echo(JournalCrypto().decrypt(token, password))
	except CryptoError as e:
		click.echo(f'Error: {e}')
		raise SystemExit(1)
