"""Raw byte-blob storage keyed by name.

The settings store and category repository only rely on the `RawStorage`
protocol; `FileStorage` is the on-disk implementation.
"""
from __future__ import annotations
import logging, os, re, tempfile
from pathlib import Path
from typing import Optional, Protocol
from config.settings import data_dir

log = logging.getLogger(__name__)

_KEY_RE = re.compile(r'^[A-Za-z0-9][A-Za-z0-9_.-]*$')

class StorageError(Exception): ...

class RawStorage(Protocol):
	def read_bytes(self, key: str) -> Optional[bytes]:
		"""Return the blob stored under `key`, or None if there is none."""
		...

	def write_bytes_atomic(self, key: str, data: bytes) -> bool:
		"""Replace the blob under `key`; readers never see a partial blob.

		Raises StorageError on failure.
		"""
		...


class FileStorage:
	def __init__(self, root: Path | None = None):
		# Resolve dynamically to honor environment overrides in tests
		self.root = Path(root) if root is not None else data_dir()

	def path_for(self, key: str) -> Path:
		if not isinstance(key, str) or not _KEY_RE.match(key) or '..' in key:
			raise StorageError(f"Invalid storage key: {key!r}")
		return self.root / key

	def exists(self, key: str) -> bool:
		p = self.path_for(key)
		return p.exists() and p.stat().st_size > 0

	def read_bytes(self, key: str) -> Optional[bytes]:
		p = self.path_for(key)
		try:
			return p.read_bytes()
		except FileNotFoundError:
			return None
		except OSError as e:
			raise StorageError(f"Failed to read {p}: {e}") from e

	def write_bytes_atomic(self, key: str, data: bytes) -> bool:
		"""Write to a temp file in the same directory, fsync, then os.replace."""
		target = self.path_for(key)
		tmp_path = None
		try:
			self.root.mkdir(parents=True, exist_ok=True)
			fd, tmp_path = tempfile.mkstemp(dir=self.root, prefix=f".{key}.", suffix='.tmp')
			with os.fdopen(fd, 'wb') as f:
				f.write(data)
				f.flush()
				os.fsync(f.fileno())
			os.replace(tmp_path, target)
			tmp_path = None
		except OSError as e:
			raise StorageError(f"Failed to write {target}: {e}") from e
		finally:
			if tmp_path is not None:
				Path(tmp_path).unlink(missing_ok=True)
		log.debug("Wrote %d bytes -> %s", len(data), target)
		return True
