"""Category name validation in front of category persistence."""
from __future__ import annotations
import json, logging, re, threading
from typing import List, Protocol
from config.settings import CATEGORIES_KEY, MAX_CATEGORY_LENGTH
from .sanitizer import FieldKind, is_safe
from .storage import RawStorage, StorageError

log = logging.getLogger(__name__)

_NAME_RE = re.compile(r"^[\w][\w \-&'.,()]*$")

class CategoryRepository(Protocol):
	def persist_category(self, name: str) -> bool:
		"""Store an already validated category name."""
		...


def is_valid_category_name(name) -> bool:
	if not isinstance(name, str):
		return False
	name = name.strip()
	if not name or len(name) > MAX_CATEGORY_LENGTH:
		return False
	# anything sanitization would touch is rejected outright
	return is_safe(name, FieldKind.CATEGORY) and bool(_NAME_RE.match(name))


class CategoryGate:
	def __init__(self, repository: CategoryRepository):
		self.repository = repository

	def add_category(self, name: str) -> bool:
		if not is_valid_category_name(name):
			log.info("Rejected category name %r", name)
			return False
		try:
			return bool(self.repository.persist_category(name.strip()))
		except StorageError as e:
			log.error("Failed to persist category: %s", e)
			return False


class JsonCategoryRepository:
	"""Unique, insertion-ordered category names kept as a JSON list in raw storage."""

	def __init__(self, storage: RawStorage, key: str = CATEGORIES_KEY):
		self.storage = storage
		self.key = key
		self._lock = threading.Lock()

	def list_categories(self) -> List[str]:
		raw = self.storage.read_bytes(self.key)
		if raw is None:
			return []
		try:
			names = json.loads(raw.decode('utf-8'))
		except ValueError as e:
			raise StorageError(f"Corrupt category list: {e}") from e
		if not isinstance(names, list):
			raise StorageError("Corrupt category list: expected a JSON array")
		return [n for n in names if isinstance(n, str)]

	def persist_category(self, name: str) -> bool:
		with self._lock:
			names = self.list_categories()
			if name in names:
				return True
			names.append(name)
			return self.storage.write_bytes_atomic(self.key, json.dumps(names, ensure_ascii=False).encode('utf-8'))
