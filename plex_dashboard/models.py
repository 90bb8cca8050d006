"""
Data models for the dashboard: connection config, format definitions and
media records fetched from upstream.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Iterator, Optional

from plex_dashboard.utils import mask_secret, pad_two, to_int

# Dashboard media type -> upstream section type
MEDIA_TYPES = {
    'movies': 'movie',
    'shows': 'show',
    'music': 'artist',
}

SECTION_TYPE_TO_MEDIA_TYPE = {section: media for media, section in MEDIA_TYPES.items()}


def media_type_for_section(section_type: Any) -> Optional[str]:
    """Map an upstream section type ('movie', 'show', 'artist') to a dashboard media type."""
    return SECTION_TYPE_TO_MEDIA_TYPE.get(str(section_type or '').lower())


@dataclass
class DashboardConfig:
    """Connection settings for the media server and its analytics companion."""

    plex_url: Optional[str] = None
    plex_token: Optional[str] = None
    tautulli_url: Optional[str] = None
    tautulli_api_key: Optional[str] = None

    FIELD_NAMES = {
        'plexUrl': 'plex_url',
        'plexToken': 'plex_token',
        'tautulliUrl': 'tautulli_url',
        'tautulliApiKey': 'tautulli_api_key',
    }

    @property
    def has_plex(self) -> bool:
        return bool(self.plex_url and self.plex_token)

    @property
    def has_tautulli(self) -> bool:
        return bool(self.tautulli_url and self.tautulli_api_key)

    @classmethod
    def from_dict(cls, data: Mapping) -> 'DashboardConfig':
        """Build from the persisted camelCase JSON layout."""
        return cls(**{attr: data.get(key) or None for key, attr in cls.FIELD_NAMES.items()})

    def to_dict(self) -> dict[str, Optional[str]]:
        return {key: getattr(self, attr) or None for key, attr in self.FIELD_NAMES.items()}

    def merged(self, updates: Mapping) -> 'DashboardConfig':
        """Return a copy where every non-empty value in ``updates`` replaces the current one."""
        current = self.to_dict()
        for key in self.FIELD_NAMES:
            if updates.get(key):
                current[key] = updates[key]
        return DashboardConfig.from_dict(current)

    def public_dict(self) -> dict[str, Any]:
        """Config summary that never exposes secrets."""
        return {
            'plexUrl': self.plex_url,
            'tautulliUrl': self.tautulli_url,
            'hasPlexToken': bool(self.plex_token),
            'hasTautulliKey': bool(self.tautulli_api_key),
        }

    def __repr__(self) -> str:
        """String representation with masked secrets."""
        return (
            f"DashboardConfig(plex_url='{self.plex_url}', plex_token='{mask_secret(self.plex_token)}', "
            f"tautulli_url='{self.tautulli_url}', tautulli_api_key='{mask_secret(self.tautulli_api_key)}')"
        )


@dataclass(frozen=True)
class FormatDefinition:
    """A user-authored template bound to an output name."""

    name: str
    template: str
    section_id: str = 'all'
    media_type: Optional[str] = None
    type: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping) -> 'FormatDefinition':
        section_id = data.get('sectionId')
        return cls(
            name=str(data.get('name') or ''),
            template=str(data.get('template') or ''),
            section_id='all' if section_id in (None, '') else str(section_id),
            media_type=data.get('mediaType') or None,
            type=data.get('type') or None,
        )

    def matches_section(self, section_id: Any) -> bool:
        return self.section_id == 'all' or self.section_id == str(section_id)

    def to_dict(self) -> dict[str, Any]:
        data = {'name': self.name, 'template': self.template, 'sectionId': self.section_id}
        if self.media_type:
            data['mediaType'] = self.media_type
        if self.type:
            data['type'] = self.type
        return data


class MediaItem(Mapping):
    """
    A media record returned by the analytics API.

    Known fields are exposed as typed properties; everything else the upstream
    sends is kept in the underlying mapping so templates can address any field
    by name. Instances are treated as immutable because cached section lists
    are shared between requests; use ``copy`` to derive an enriched item.
    """

    kind = 'item'
    ARRAY_FIELDS = ('directors', 'writers', 'actors', 'genres', 'labels', 'collections')

    _registry: dict[str, type] = {}

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        MediaItem._registry[cls.kind] = cls

    def __init__(self, fields: Optional[Mapping] = None, **extra: Any):
        data = dict(fields or {})
        data.update(extra)
        for name in self.ARRAY_FIELDS:
            if data.get(name) is None:
                data[name] = []
        self._fields = data

    @classmethod
    def from_upstream(cls, record: Mapping, **extra: Any) -> 'MediaItem':
        """Pick the variant matching the record's ``media_type``."""
        item_cls = cls._registry.get(str(record.get('media_type') or '').lower(), cls)
        return item_cls(record, **extra)

    def __getitem__(self, key: str) -> Any:
        return self._fields[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(rating_key={self.rating_key!r}, title={self.title!r})"

    def copy(self, **updates: Any) -> 'MediaItem':
        return type(self)(self._fields, **updates)

    def to_dict(self) -> dict[str, Any]:
        return dict(self._fields)

    @property
    def rating_key(self) -> Optional[str]:
        value = self._fields.get('rating_key')
        return None if value in (None, '') else str(value)

    @property
    def title(self) -> str:
        return self._fields.get('title') or ''

    @property
    def section_id(self) -> Optional[str]:
        value = self._fields.get('section_id')
        return None if value is None else str(value)

    @property
    def added_timestamp(self) -> int:
        """Numeric added-at value used for ordering; missing or invalid sorts as 0."""
        value = self._fields.get('added_at')
        if value in (None, ''):
            value = self._fields.get('addedAt')
        return to_int(value) or 0


class MovieItem(MediaItem):
    kind = 'movie'


class ShowItem(MediaItem):
    kind = 'show'


class SeasonItem(MediaItem):
    kind = 'season'


class EpisodeItem(MediaItem):
    kind = 'episode'

    @property
    def episode_code(self) -> str:
        season = self._fields.get('parent_media_index') or 0
        episode = self._fields.get('media_index') or 0
        return f"S{pad_two(season)}E{pad_two(episode)}"


class ArtistItem(MediaItem):
    kind = 'artist'


class AlbumItem(MediaItem):
    kind = 'album'


class TrackItem(MediaItem):
    kind = 'track'
