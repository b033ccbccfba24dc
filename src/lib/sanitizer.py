"""Free-text sanitization for journal and settings fields.

Input is first cut to the field limit, then every removal rule is applied
until nothing changes. A removal can glue two halves of a new token together
(``scrscriptipt``); ordinary text settles in a pass or two, deeper nesting is
finished by a single stack pass so the cost stays linear in the input.
"""
from __future__ import annotations
import re
from bisect import bisect_left
from enum import Enum
from itertools import chain
from config.settings import (
	MAX_CATEGORY_LENGTH, MAX_TITLE_LENGTH, MAX_MOOD_LENGTH, MAX_TAGS_LENGTH, MAX_CONTENT_LENGTH, MAX_TEXT_LENGTH
)

class FieldKind(Enum):
	TITLE = 'title'
	CONTENT = 'content'
	TAGS = 'tags'
	CATEGORY = 'category'
	MOOD = 'mood'
	TEXT = 'text'

MAX_LENGTHS = {
	FieldKind.TITLE: MAX_TITLE_LENGTH,
	FieldKind.CONTENT: MAX_CONTENT_LENGTH,
	FieldKind.TAGS: MAX_TAGS_LENGTH,
	FieldKind.CATEGORY: MAX_CATEGORY_LENGTH,
	FieldKind.MOOD: MAX_MOOD_LENGTH,
	FieldKind.TEXT: MAX_TEXT_LENGTH,
}

# C0 (minus tab/newline/cr), DEL, C1, bidi marks/overrides/isolates, zero-width, line/paragraph separators
_CONTROL = re.compile(
	r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f'
	r'\u061c\u200b-\u200f\u202a-\u202e\u2028\u2029\u2060\u2066-\u2069\ufeff]'
)
_LINE_BREAKS = re.compile('[\t\n\r]')

_SCRIPT_OPEN = re.compile(r'<\s*script\b', re.IGNORECASE)
_SCRIPT_CLOSE = re.compile(r'<\s*/\s*script\s*>', re.IGNORECASE)
_MARKUP = [re.compile(r'<[^<>]*>'), re.compile(r'[<>]')]

# (pattern, longest possible match, a character every match contains)
_TOKEN_RULES = (
	# script schemes / inline handlers
	(r'(?:java|vb)\s{0,8}script\s{0,8}:', 27, ':'),
	(r'\bon[a-z]{1,24}\s{0,8}=', 35, '='),
	(r'script', 6, None),
	# sql
	(r'\bunion\s{1,8}(?:all\s{1,8})?select\b', 30, None),
	(r'\b(?:drop|delete|insert)\b', 6, None),
	(r"'\s{0,8}or\s{1,8}'?\w{1,16}'?\s{0,8}=\s{0,8}'?\w{1,16}'?", 72, "'"),
	# path traversal (percent-encoded first so decoding leftovers can't form new dots)
	(r'%(?:25){0,4}(?:2e|2f|5c)', 11, '%'),
	(r'\.\.', 2, '.'),
	(r'[/\\]', 1, None),
	(r'system32', 8, None),
	# shell
	(r'\brm\s{1,8}-[a-z]{0,8}[rf][a-z]{0,8}', 28, '-'),
	(r'\bpowershell\b', 10, None),
	(r'\$[({]|`|&&|\|', 2, None),
	(r';', 1, None),
	# template
	(r'\{\{|\}\}|\{%|%\}', 2, None),
)
_RULES = [re.compile(pattern, re.IGNORECASE) for pattern, _, _ in _TOKEN_RULES]

def _before_last(pattern: str):
	# a match that ends right before the final character, which serves as lookahead context
	return re.compile(rf'(?:{pattern})(?=[\s\S]\Z)', re.IGNORECASE)

_TAIL_PLAIN = _before_last('|'.join(p for p, _, needle in _TOKEN_RULES if needle is None))
_TAIL_PLAIN_REACH = max(reach for _, reach, needle in _TOKEN_RULES if needle is None)
_TAIL_NEEDLED = [(_before_last(p), reach, needle) for p, reach, needle in _TOKEN_RULES if needle]
_WINDOW = max(reach for _, reach, _ in _TOKEN_RULES) + 2
# acts as end of input: non-word, never part of a match, and stripped earlier as a control char
_SENTINEL = '\x00'
_QUICK_PASSES = 4


def _drop_script_blocks(text: str) -> str:
	"""Remove ``<script ...>...</script>`` blocks, each open tag paired with the nearest close after it."""
	closes = list(_SCRIPT_CLOSE.finditer(text))
	if not closes:
		return text
	starts = [m.start() for m in closes]
	pieces, pos = [], 0
	while True:
		opening = _SCRIPT_OPEN.search(text, pos)
		if opening is None:
			break
		k = bisect_left(starts, opening.end())
		if k == len(starts):
			break
		pieces.append(text[pos:opening.start()])
		pos = closes[k].end()
	pieces.append(text[pos:])
	return ''.join(pieces)


def _strip_once(text: str, kind: FieldKind) -> str:
	text = _CONTROL.sub('', text)
	if kind is not FieldKind.CONTENT:
		text = _LINE_BREAKS.sub(' ', text)
	text = _drop_script_blocks(text)
	for rule in _MARKUP:
		text = rule.sub('', text)
	for rule in _RULES:
		text = rule.sub('', text)
	if kind is not FieldKind.CONTENT:
		text = text.strip()
	return text


def _tail_match(window: str):
	last = len(window) - 1
	m = _TAIL_PLAIN.search(window, max(0, last - _TAIL_PLAIN_REACH))
	if m:
		return m.span()
	for pattern, reach, needle in _TAIL_NEEDLED:
		if needle in window:
			m = pattern.search(window, max(0, last - reach))
			if m:
				return m.span()
	return None


def _strip_nested(text: str) -> str:
	"""Remove token matches in one left-to-right pass.

	Characters are pushed onto `out`; after each push any match ending just
	before the newest character is popped. A deletion can only create a match
	that ends at the join, which is the next thing checked, so the result
	contains no match anywhere. Only valid on text already free of markup and
	control characters.
	"""
	out: list[str] = []
	for ch in chain(text, _SENTINEL):
		out.append(ch)
		while True:
			window = ''.join(out[-_WINDOW:])
			span = _tail_match(window)
			if span is None:
				break
			offset = len(out) - len(window)
			del out[offset + span[0]:offset + span[1]]
	out.pop()
	return ''.join(out)


def _clean(text: str, kind: FieldKind) -> str:
	for _ in range(_QUICK_PASSES):
		cleaned = _strip_once(text, kind)
		if cleaned == text:
			return text
		text = cleaned
	text = _strip_nested(text)
	return text if kind is FieldKind.CONTENT else text.strip()


def _coerce(raw) -> str:
	if raw is None: return ''
	return raw if isinstance(raw, str) else str(raw)


def strip_dangerous(raw, kind: FieldKind = FieldKind.TEXT) -> str:
	"""Apply every removal rule without enforcing the length limit."""
	return _clean(_coerce(raw), kind)


def sanitize(raw, kind: FieldKind = FieldKind.TEXT) -> str:
	"""Return `raw` cut to the field limit with dangerous content removed.

	Never raises and never returns None.
	"""
	return _clean(_coerce(raw)[:MAX_LENGTHS[kind]], kind)


def is_safe(raw, kind: FieldKind = FieldKind.TEXT) -> bool:
	"""True when sanitization leaves the (end-trimmed) input untouched."""
	if not isinstance(raw, str):
		return False
	candidate = raw if kind is FieldKind.CONTENT else raw.strip()
	return sanitize(raw, kind) == candidate
