"""Encrypted, cached persistence for AppSettings.

Stored blob: JournalCrypto v1 bytes wrapping UTF-8 JSON
	{"version": 1, "settings": {...}}

Reads never fail: a missing, unreadable, tampered or invalid blob yields
default settings. Defaults served because storage could not be read are not
cached, and nothing is written until the stored state has been read, so a
passing I/O error cannot overwrite good settings. Every read-modify-write
runs under one lock, and the cached model is only ever replaced, never
mutated in place.
"""
from __future__ import annotations
import json, logging, threading
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Optional
from config.settings import SETTINGS_KEY, SETTINGS_PAYLOAD_VERSION, BACKUP_SUFFIX, settings_passphrase
from .crypto import JournalCrypto, CryptoError
from .models import AppSettings, ValidationError
from .storage import RawStorage, StorageError

log = logging.getLogger(__name__)

class SecureSettingsStore:
	def __init__(self, storage: RawStorage, password: str | None = None, crypto: JournalCrypto | None = None,
			key: str = SETTINGS_KEY):
		self.storage = storage
		self.key = key
		self.crypto = crypto or JournalCrypto()
		self._password = password or settings_passphrase()
		self._lock = threading.RLock()
		self._cache: Optional[AppSettings] = None

	# ---- Public API ------------------------------------------------------

	def load(self) -> AppSettings:
		"""Return a copy of the current settings, reading storage only on a cold cache."""
		cached = self._cache
		if cached is not None:
			return cached.copy()
		with self._lock:
			try:
				return self._load_locked().copy()
			except (StorageError, OSError) as e:
				log.warning("Settings unreadable (%s); using defaults", e)
				return AppSettings.create_default()

	def save(self, model: AppSettings) -> bool:
		if not isinstance(model, AppSettings) or not model.is_valid():
			log.warning("Refusing to save invalid settings")
			return False
		with self._lock:
			if self._current() is None:
				return False
			return self._persist(model.copy())

	def clear_cache(self) -> None:
		with self._lock:
			self._cache = None

	def update_text_size(self, value: int) -> bool:
		return self._update('text_size', value)

	def update_auto_save_interval(self, value: int) -> bool:
		return self._update('auto_save_interval', value)

	def update_backup_frequency(self, value: int) -> bool:
		return self._update('backup_frequency', value)

	def update_theme(self, value: str) -> bool:
		return self._update('theme', value)

	def update_default_category(self, value: str) -> bool:
		return self._update('default_category', value)

	def backup_due(self, last_backup: Optional[datetime], now: Optional[datetime] = None) -> bool:
		if last_backup is None:
			return True
		now = now or datetime.now()
		return now - last_backup >= timedelta(hours=self.load().backup_frequency)

	def backup(self, dest_dir: Path) -> Path:
		"""Copy the stored (still encrypted) blob to a timestamped file in dest_dir."""
		with self._lock:
			blob = self.storage.read_bytes(self.key)
			if blob is None:
				raise StorageError("No stored settings to back up")
			stamp = datetime.now().strftime('%Y%m%d_%H%M%S_%f')
			dest = Path(dest_dir) / f"settings_{stamp}{BACKUP_SUFFIX}"
			try:
				dest.parent.mkdir(parents=True, exist_ok=True)
				dest.write_bytes(blob)
			except OSError as e:
				raise StorageError(f"Failed to write backup {dest}: {e}") from e
		log.info("Settings backed up to: %s", dest)
		return dest

	def restore(self, backup_path: Path) -> bool:
		"""Replace stored settings with a backup, only if the backup authenticates and validates."""
		try:
			blob = Path(backup_path).read_bytes()
		except OSError as e:
			log.error("Cannot read backup %s: %s", backup_path, e)
			return False
		try:
			model = self._decode(blob)
		except (CryptoError, ValueError) as e:
			log.error("Backup %s rejected: %s", backup_path, e)
			return False
		with self._lock:
			if not self._write(blob):
				return False
			self._cache = model
		log.info("Settings restored from: %s", backup_path)
		return True

	# ---- Internals -------------------------------------------------------

	def _update(self, field: str, value: Any) -> bool:
		with self._lock:
			current = self._current()
			if current is None:
				return False
			candidate = current.copy()
			try:
				setattr(candidate, field, value)
			except ValidationError as e:
				log.info("Rejected settings update: %s", e)
				return False
			return self._persist(candidate)

	def _load_locked(self) -> AppSettings:
		# a read error propagates and leaves the cache cold, so the next call retries
		if self._cache is None:
			self._cache = self._read()
		return self._cache

	def _current(self) -> Optional[AppSettings]:
		"""Stored settings for a write, or None when storage cannot be read right now."""
		try:
			return self._load_locked()
		except (StorageError, OSError) as e:
			log.error("Settings unreadable (%s); refusing to write over them", e)
			return None

	def _read(self) -> AppSettings:
		blob = self.storage.read_bytes(self.key)
		if blob is None:
			log.info("No stored settings; using defaults")
			return AppSettings.create_default()
		try:
			return self._decode(blob)
		except CryptoError as e:
			log.warning("Settings failed integrity check (%s); using defaults", e)
		except ValueError as e:  # bad JSON, bad UTF-8, out-of-range values
			log.warning("Stored settings invalid (%s); using defaults", e)
		return AppSettings.create_default()

	def _decode(self, blob: bytes) -> AppSettings:
		payload = json.loads(self.crypto.decrypt_bytes(blob, self._password).decode('utf-8'))
		if not isinstance(payload, dict) or payload.get('version') != SETTINGS_PAYLOAD_VERSION:
			raise ValidationError("Unsupported settings payload version")
		return AppSettings.from_dict(payload.get('settings'))

	def _encode(self, model: AppSettings) -> bytes:
		payload = {'version': SETTINGS_PAYLOAD_VERSION, 'settings': model.to_dict()}
		return self.crypto.encrypt_bytes(json.dumps(payload).encode('utf-8'), self._password)

	def _write(self, blob: bytes) -> bool:
		try:
			ok = self.storage.write_bytes_atomic(self.key, blob)
		except (StorageError, OSError) as e:
			log.error("Failed to save settings: %s", e)
			return False
		if not ok:
			log.error("Failed to save settings: storage reported failure")
		return bool(ok)

	def _persist(self, model: AppSettings) -> bool:
		try:
			blob = self._encode(model)
		except CryptoError as e:
			log.error("Failed to encrypt settings: %s", e)
			return False
		if not self._write(blob):
			return False
		self._cache = model
		log.info("Settings saved -> %s", self.key)
		return True
