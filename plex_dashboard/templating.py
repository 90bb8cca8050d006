"""
Template engine for user-defined display formats.

A template is plain text with ``{field}`` or ``{field:modifier}`` placeholders.
Each placeholder is resolved against a record through ``FIELD_RULES``: the first
rule whose predicate accepts the field decides how the value is rendered, and
fields no rule claims are substituted as-is. Placeholders naming a field the
record does not have are left in the output untouched so broken templates are
easy to spot.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Optional

from plex_dashboard.formatters import (
    format_array,
    format_date,
    format_duration,
    format_episode_code,
)
from plex_dashboard.models import FormatDefinition
from plex_dashboard.utils import pad_two

logger = logging.getLogger(__name__)

VARIABLE_RE = re.compile(r'\{([^{}]+)\}')

EPISODE_PAIR = '{parent_media_index}E{media_index}'

TIMESTAMP_FIELDS = frozenset({
    'addedAt',
    'added_at',
    'updated_at',
    'last_viewed_at',
    'originally_available_at',
    'last_seen',
    'last_played_at',
})

EPISODE_INDEX_FIELDS = frozenset({'parent_media_index', 'media_index'})
EPISODE_MEDIA_TYPES = frozenset({'episode', 'show', 'shows'})

DEFAULT_MODIFIER = 'default'


class _Missing:
    def __repr__(self) -> str:
        return 'MISSING'


MISSING = _Missing()


def is_episode_like(data: Mapping) -> bool:
    """True when the record describes TV content, so season/episode indexes get S/E prefixes."""
    if getattr(data, 'kind', None) == 'episode':
        return True
    media_type = data.get('mediaType') or data.get('media_type') or ''
    return str(media_type).lower() in EPISODE_MEDIA_TYPES


@dataclass(frozen=True)
class FieldRule:
    """Maps a class of field names to the formatter that renders them."""

    name: str
    applies: Callable[[str, Mapping], bool]
    resolve: Callable[[str, str, Mapping], Any]


def _resolve_episode_index(key: str, modifier: str, data: Mapping) -> str:
    prefix = 'S' if key == 'parent_media_index' else 'E'
    return prefix + pad_two(data.get(key) or '0')


def _resolve_raw(key: str, modifier: str, data: Mapping) -> Any:
    return data[key] if key in data else MISSING


FIELD_RULES: tuple[FieldRule, ...] = (
    FieldRule(
        name='timestamp',
        applies=lambda key, data: key in TIMESTAMP_FIELDS,
        resolve=lambda key, modifier, data: format_date(data.get(key), modifier),
    ),
    FieldRule(
        name='duration',
        applies=lambda key, data: key == 'duration',
        resolve=lambda key, modifier, data: format_duration(data.get(key)),
    ),
    FieldRule(
        name='episode_index',
        applies=lambda key, data: key in EPISODE_INDEX_FIELDS and is_episode_like(data),
        resolve=_resolve_episode_index,
    ),
    FieldRule(
        name='array',
        applies=lambda key, data: isinstance(data.get(key), (list, tuple)),
        resolve=lambda key, modifier, data: format_array(data.get(key)),
    ),
)


def resolve_field(key: str, modifier: str, data: Mapping, rules: Iterable[FieldRule] = FIELD_RULES) -> Any:
    """Resolve one placeholder; returns ``MISSING`` when the record lacks the field."""
    for rule in rules:
        if rule.applies(key, data):
            return rule.resolve(key, modifier, data)
    return _resolve_raw(key, modifier, data)


def to_text(value: Any) -> str:
    """Render a resolved value the way the frontend expects (None -> '', true/false, 8.0 -> '8')."""
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def render(template: Optional[str], data: Mapping, rules: Iterable[FieldRule] = FIELD_RULES) -> str:
    """
    Substitute a record's fields into a template.

    Args:
        template: Template text with {field} / {field:modifier} placeholders
        data: Record to read fields from
        rules: Field rules, first match wins

    Returns:
        Rendered string; empty string for an empty template
    """
    if not template:
        return ''

    rules = tuple(rules)
    result = template

    if EPISODE_PAIR in result and is_episode_like(data):
        code = format_episode_code(data.get('parent_media_index') or 0, data.get('media_index') or 0)
        result = result.replace(EPISODE_PAIR, code)

    resolved: dict[str, str] = {}

    def substitute(match: re.Match) -> str:
        variable = match.group(0)
        if variable not in resolved:
            key, _, modifier = match.group(1).partition(':')
            try:
                value = resolve_field(key, modifier or DEFAULT_MODIFIER, data, rules)
            except Exception:
                logger.exception("Error processing template variable %s", key)
                value = ''
            resolved[variable] = variable if value is MISSING else to_text(value)
        return resolved[variable]

    return VARIABLE_RE.sub(substitute, result)


_ANY = object()


def select_formats(
    formats: Iterable[FormatDefinition],
    section_id: Any = _ANY,
    media_type: Any = _ANY,
    format_type: Any = _ANY,
) -> list[FormatDefinition]:
    """
    Filter format definitions by the criteria that were given.

    Args:
        formats: Candidate definitions
        section_id: Keep formats bound to this section or to 'all'
        media_type: Keep formats without a mediaType or with this one
        format_type: Keep formats whose type equals this value

    Returns:
        Matching definitions in their stored order
    """
    selected = []
    for fmt in formats:
        if section_id is not _ANY and not fmt.matches_section(section_id):
            continue
        if media_type is not _ANY and fmt.media_type and fmt.media_type != media_type:
            continue
        if format_type is not _ANY and fmt.type != format_type:
            continue
        selected.append(fmt)
    return selected


def apply_formats(formats: Iterable[FormatDefinition], data: Mapping) -> dict[str, str]:
    """Render every format against a record, keyed by format name."""
    output = {}
    for fmt in formats:
        try:
            output[fmt.name] = render(fmt.template, data)
        except Exception:
            logger.exception("Error applying format %s", fmt.name)
            output[fmt.name] = ''
    return output


def formatted_entry(formatted: Mapping[str, str], raw: Any, raw_key: str = 'raw_data') -> dict[str, Any]:
    """
    Response entry carrying rendered formats and the source record.

    Rendered values appear both at the top level (where the dashboard widgets
    read them) and under ``formatted``; the untouched record sits under
    ``raw_key``.
    """
    entry = dict(formatted)
    entry['formatted'] = dict(formatted)
    entry[raw_key] = raw
    return entry
