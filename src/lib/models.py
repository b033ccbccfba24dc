"""In-memory models: validated app settings and sanitized journal entries.

Numeric settings fail fast on bad input, the theme silently falls back to
the default, and free text is always stored sanitized.
"""
from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, Optional
from config.settings import (
	TEXT_SIZE_RANGE, AUTO_SAVE_INTERVAL_RANGE, BACKUP_FREQUENCY_RANGE, THEMES,
	DEFAULT_TEXT_SIZE, DEFAULT_AUTO_SAVE_INTERVAL, DEFAULT_BACKUP_FREQUENCY, DEFAULT_THEME, DEFAULT_CATEGORY,
	MAX_CATEGORY_LENGTH, MAX_ENTRY_ID
)
from .sanitizer import FieldKind, sanitize, strip_dangerous, is_safe

class ValidationError(ValueError): ...
class RangeError(ValidationError): ...
class ContentError(ValidationError): ...

def _check_range(name: str, value: Any, bounds: tuple) -> int:
	lo, hi = bounds
	if isinstance(value, bool) or not isinstance(value, int):
		raise RangeError(f"{name} must be an integer, got {value!r}")
	if not lo <= value <= hi:
		raise RangeError(f"{name} must be between {lo} and {hi}, got {value}")
	return value

def canonical_theme(value: Any) -> str:
	"""Map user input onto one of THEMES; anything unrecognised becomes the default."""
	if isinstance(value, str):
		key = value.strip().lower()
		for theme in THEMES:
			if theme.lower() == key:
				return theme
	return DEFAULT_THEME


class AppSettings:
	FIELDS = ('text_size', 'auto_save_interval', 'backup_frequency', 'theme', 'default_category')

	def __init__(self, text_size: int = DEFAULT_TEXT_SIZE, auto_save_interval: int = DEFAULT_AUTO_SAVE_INTERVAL,
			backup_frequency: int = DEFAULT_BACKUP_FREQUENCY, theme: str = DEFAULT_THEME,
			default_category: str = DEFAULT_CATEGORY):
		self.text_size = text_size
		self.auto_save_interval = auto_save_interval
		self.backup_frequency = backup_frequency
		self.theme = theme
		self.default_category = default_category

	@classmethod
	def create_default(cls) -> 'AppSettings':
		return cls()

	@property
	def text_size(self) -> int:
		return self._text_size

	@text_size.setter
	def text_size(self, value: int):
		self._text_size = _check_range('text_size', value, TEXT_SIZE_RANGE)

	@property
	def auto_save_interval(self) -> int:
		"""Seconds between automatic saves."""
		return self._auto_save_interval

	@auto_save_interval.setter
	def auto_save_interval(self, value: int):
		self._auto_save_interval = _check_range('auto_save_interval', value, AUTO_SAVE_INTERVAL_RANGE)

	@property
	def backup_frequency(self) -> int:
		"""Hours between backups."""
		return self._backup_frequency

	@backup_frequency.setter
	def backup_frequency(self, value: int):
		self._backup_frequency = _check_range('backup_frequency', value, BACKUP_FREQUENCY_RANGE)

	@property
	def theme(self) -> str:
		return self._theme

	@theme.setter
	def theme(self, value: str):
		self._theme = canonical_theme(value)

	@property
	def default_category(self) -> str:
		return self._default_category

	@default_category.setter
	def default_category(self, value: str):
		cleaned = strip_dangerous(value, FieldKind.CATEGORY)
		if len(cleaned) > MAX_CATEGORY_LENGTH:
			raise ContentError(f"default_category must be at most {MAX_CATEGORY_LENGTH} characters")
		self._default_category = cleaned or DEFAULT_CATEGORY

	def is_valid(self) -> bool:
		try:
			_check_range('text_size', self._text_size, TEXT_SIZE_RANGE)
			_check_range('auto_save_interval', self._auto_save_interval, AUTO_SAVE_INTERVAL_RANGE)
			_check_range('backup_frequency', self._backup_frequency, BACKUP_FREQUENCY_RANGE)
		except (RangeError, AttributeError):
			return False
		return (self._theme in THEMES
			and 0 < len(self._default_category) <= MAX_CATEGORY_LENGTH
			and is_safe(self._default_category, FieldKind.CATEGORY))

	def to_dict(self) -> Dict[str, Any]:
		return {name: getattr(self, name) for name in self.FIELDS}

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> 'AppSettings':
		"""Build settings from a (possibly partial) dict through the validating setters.

		Unknown keys are ignored; missing keys keep their defaults. Raises
		ValidationError if a present value is out of range.
		"""
		if not isinstance(data, dict):
			raise ValidationError('Settings payload must be an object')
		model = cls.create_default()
		for name in cls.FIELDS:
			if data.get(name) is not None:
				setattr(model, name, data[name])
		return model

	def copy(self) -> 'AppSettings':
		return AppSettings.from_dict(self.to_dict())

	def __eq__(self, other):
		if not isinstance(other, AppSettings):
			return NotImplemented
		return self.to_dict() == other.to_dict()

	__hash__ = None

	def __repr__(self):
		fields = ', '.join(f"{k}={v!r}" for k, v in self.to_dict().items())
		return f"AppSettings({fields})"


def _coerce_datetime(name: str, value: Any) -> datetime:
	if value is None:
		return datetime.now()
	if isinstance(value, datetime):
		return value
	if isinstance(value, str):
		try:
			return datetime.fromisoformat(value)
		except ValueError as e:
			raise ValidationError(f"{name} is not an ISO-8601 timestamp: {value!r}") from e
	raise ValidationError(f"{name} must be a datetime, got {type(value).__name__}")


class JournalEntry:
	"""A journal entry whose text fields are sanitized on every assignment.

	Timestamps are stored as given (no calendar clamping); the id is clamped
	into [0, MAX_ENTRY_ID].
	"""

	def __init__(self, id: int = 0, title: str = '', content: str = '', tags: str = '', category: str = '',
			mood: str = '', created_at: Optional[datetime] = None, updated_at: Optional[datetime] = None):
		self.id = id
		self.title = title
		self.content = content
		self.tags = tags
		self.category = category
		self.mood = mood
		self.created_at = created_at
		self.updated_at = updated_at if updated_at is not None else self.created_at

	@property
	def id(self) -> int:
		return self._id

	@id.setter
	def id(self, value: int):
		if isinstance(value, bool) or not isinstance(value, int):
			value = 0
		self._id = min(max(value, 0), MAX_ENTRY_ID)

	@property
	def title(self) -> str:
		return self._title

	@title.setter
	def title(self, value: str):
		self._title = sanitize(value, FieldKind.TITLE)

	@property
	def content(self) -> str:
		return self._content

	@content.setter
	def content(self, value: str):
		self._content = sanitize(value, FieldKind.CONTENT)

	@property
	def tags(self) -> str:
		return self._tags

	@tags.setter
	def tags(self, value: str):
		self._tags = sanitize(value, FieldKind.TAGS)

	@property
	def category(self) -> str:
		return self._category

	@category.setter
	def category(self, value: str):
		self._category = sanitize(value, FieldKind.CATEGORY)

	@property
	def mood(self) -> str:
		return self._mood

	@mood.setter
	def mood(self, value: str):
		self._mood = sanitize(value, FieldKind.MOOD)

	@property
	def created_at(self) -> datetime:
		return self._created_at

	@created_at.setter
	def created_at(self, value: datetime):
		self._created_at = _coerce_datetime('created_at', value)

	@property
	def updated_at(self) -> datetime:
		return self._updated_at

	@updated_at.setter
	def updated_at(self, value: datetime):
		self._updated_at = _coerce_datetime('updated_at', value)

	def tag_list(self) -> list:
		return [t.strip() for t in self.tags.split(',') if t.strip()]

	def touch(self):
		self.updated_at = datetime.now()

	def to_dict(self) -> Dict[str, Any]:
		return {
			'id': self.id, 'title': self.title, 'content': self.content, 'tags': self.tags,
			'category': self.category, 'mood': self.mood,
			'created_at': self.created_at.isoformat(), 'updated_at': self.updated_at.isoformat(),
		}

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> 'JournalEntry':
		return cls(**{k: data[k] for k in (
			'id', 'title', 'content', 'tags', 'category', 'mood', 'created_at', 'updated_at'
		) if k in data})
