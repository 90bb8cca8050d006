"""
Shared utility functions for service modules.
"""
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Iterable, Mapping, Optional, TypeVar

T = TypeVar('T')
R = TypeVar('R')

MAX_FETCH_WORKERS = 8


def fan_out(func: Callable[[T], R], items: Iterable[T], max_workers: int = MAX_FETCH_WORKERS) -> list[R]:
    """
    Call ``func`` for every item on a thread pool and wait for all of them.

    Results keep the order of ``items`` whatever order the calls finish in.
    Exceptions raised by ``func`` propagate, so callers that want per-item
    fallbacks handle errors inside ``func``.
    """
    items = list(items)
    if not items:
        return []
    with ThreadPoolExecutor(max_workers=min(max_workers, len(items))) as executor:
        return list(executor.map(func, items))


def now_ms() -> int:
    return int(time.time() * 1000)


def section_type_of(section: Mapping[str, Any]) -> str:
    """Lowercased upstream section type ('movie', 'show', 'artist', ...)."""
    return str(section.get('section_type') or section.get('type') or '').lower()


def section_name_of(section: Mapping[str, Any]) -> Optional[str]:
    return section.get('section_name') or section.get('name')


def section_summaries(sections: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
    """The {id, name} pairs listed next to media results."""
    return [{'id': section.get('section_id'), 'name': section_name_of(section)} for section in sections]


def capitalize_first(value: Any) -> str:
    """Upper-case the first character only ('episode' -> 'Episode')."""
    text = str(value or '')
    return text[:1].upper() + text[1:]
