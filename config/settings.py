"""Project configuration settings.

Constants shared by the crypto, model and storage layers. Paths and a few
tunables can be overridden through environment variables.

Set JOURNAL_SETTINGS_PASSPHRASE for real confidentiality: without it the
settings blob is keyed by user and host name, which anyone who knows the
machine can guess, so it only keeps the file from casual reading.
"""

from pathlib import Path
import getpass
import logging
import os
import platform

log = logging.getLogger(__name__)

# Security / crypto
BLOB_VERSION = 1
DEFAULT_ITERATIONS = 200_000  # PBKDF2-SHA256
SALT_LENGTH = 16
KEY_LENGTH = 32  # AES-256
NONCE_LENGTH = 12  # GCM nonce
AUTH_TAG_LENGTH = 16  # GCM tag length

# Storage
DEFAULT_DATA_DIR = Path(os.environ.get("JOURNAL_DATA_DIR", "journal_data"))
SETTINGS_KEY = "settings.dat"
CATEGORIES_KEY = "categories.json"
BACKUP_SUFFIX = ".backup"
SETTINGS_PAYLOAD_VERSION = 1

# Settings ranges (inclusive)
TEXT_SIZE_RANGE = (8, 72)
AUTO_SAVE_INTERVAL_RANGE = (5, 300)  # seconds
BACKUP_FREQUENCY_RANGE = (1, 168)  # hours
THEMES = ("Light", "Dark", "Auto")

# Settings defaults
DEFAULT_TEXT_SIZE = 14
DEFAULT_AUTO_SAVE_INTERVAL = 30
DEFAULT_BACKUP_FREQUENCY = 24
DEFAULT_THEME = "Light"
DEFAULT_CATEGORY = "General"

# Field limits (characters)
MAX_CATEGORY_LENGTH = 50
MAX_TITLE_LENGTH = 200
MAX_MOOD_LENGTH = 50
MAX_TAGS_LENGTH = 4096
MAX_CONTENT_LENGTH = 256 * 1024
MAX_TEXT_LENGTH = 10_000
MAX_ENTRY_ID = 999_999

# Logging
LOG_LEVEL = os.environ.get("JOURNAL_LOG_LEVEL", "WARNING")


def settings_passphrase() -> str:
	"""Passphrase protecting the settings blob.

	Falls back to a value bound to the current user and host. That fallback is
	guessable and only obfuscates the blob.
	"""
	env = os.environ.get("JOURNAL_SETTINGS_PASSPHRASE")
	if env:
		return env
	try:
		user = getpass.getuser()
	except (KeyError, OSError):  # no login name (containers)
		user = "user"
	return f"journal-guard:{user}@{platform.node()}"


def kdf_iterations() -> int:
	env = os.environ.get("JOURNAL_KDF_ITERATIONS")
	if not env:
		return DEFAULT_ITERATIONS
	try:
		return int(env)
	except ValueError:
		log.warning("Ignoring non-numeric JOURNAL_KDF_ITERATIONS=%r; using %d", env, DEFAULT_ITERATIONS)
		return DEFAULT_ITERATIONS


def data_dir() -> Path:
	# Resolved at call time so tests can override the environment
	env_dir = os.environ.get("JOURNAL_DATA_DIR")
	return Path(env_dir) if env_dir else DEFAULT_DATA_DIR


__all__ = [
	'BLOB_VERSION','DEFAULT_ITERATIONS','SALT_LENGTH','KEY_LENGTH','NONCE_LENGTH','AUTH_TAG_LENGTH',
	'DEFAULT_DATA_DIR','SETTINGS_KEY','CATEGORIES_KEY','BACKUP_SUFFIX','SETTINGS_PAYLOAD_VERSION',
	'TEXT_SIZE_RANGE','AUTO_SAVE_INTERVAL_RANGE','BACKUP_FREQUENCY_RANGE','THEMES',
	'DEFAULT_TEXT_SIZE','DEFAULT_AUTO_SAVE_INTERVAL','DEFAULT_BACKUP_FREQUENCY','DEFAULT_THEME','DEFAULT_CATEGORY',
	'MAX_CATEGORY_LENGTH','MAX_TITLE_LENGTH','MAX_MOOD_LENGTH','MAX_TAGS_LENGTH','MAX_CONTENT_LENGTH',
	'MAX_TEXT_LENGTH','MAX_ENTRY_ID','LOG_LEVEL','settings_passphrase','kdf_iterations','data_dir'
]
