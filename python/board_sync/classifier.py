"""Pure helpers that turn a fetched snapshot into decision sets.

Nothing in here talks to the network; every function is deterministic for a
given input order.
"""
import math
import re
from dataclasses import dataclass, field
from html import unescape
from typing import Any, List

COLOR_GROUPS = {
    'yellow': ('yellow', 'light_yellow'),
    'green': ('green', 'light_green', 'dark_green'),
    'purple': ('violet', 'purple'),
    'blue': ('blue', 'light_blue', 'cyan'),
    'dark_blue': ('dark_blue', 'navy'),
    'pink': ('pink', 'light_pink', 'red', 'magenta'),
    'gray': ('gray', 'light_gray', 'black'),
}

TAG_REGEX = re.compile(r'<[^>]+>')
SPACE_REGEX = re.compile(r'\s+')


@dataclass
class DuplicateGroup:
    key: Any
    canonical: Any
    duplicates: List[Any] = field(default_factory=list)

    @property
    def members(self):
        return [self.canonical] + self.duplicates


def categorize_color(fill_color):
    if not fill_color:
        return 'other'
    for group, colors in COLOR_GROUPS.items():
        if fill_color in colors:
            return group
    return 'other'


def normalize_text(text):
    if not text:
        return ''
    text = unescape(TAG_REGEX.sub(' ', text))
    return SPACE_REGEX.sub(' ', text).strip().casefold()


def text_key(item):
    """Duplicate key on normalized content; items without text have no key."""
    return normalize_text(item.content) or None


def position_bucket_key(bucket_size):
    def key(item):
        if item.position is None:
            return None
        return (math.floor(item.position.x / bucket_size), math.floor(item.position.y / bucket_size))
    return key


def content_and_bucket_key(bucket_size):
    bucket = position_bucket_key(bucket_size)

    def key(item):
        text = text_key(item)
        where = bucket(item)
        if text is None or where is None:
            return None
        return (text,) + where
    return key


def with_kind(key_fn):
    """Prefix ``key_fn`` with the item kind so different kinds never collide."""
    def key(item):
        value = key_fn(item)
        if value is None:
            return None
        if not isinstance(value, tuple):
            value = (value,)
        return (item.kind,) + value
    return key


def filter_by_kind(items, *kinds):
    return [item for item in items if item.kind in kinds]


def children_of(items, parent_id):
    return [item for item in items if item.parent == parent_id]


def within_region(items, x0, x1, y0=None, y1=None):
    """Items positioned in ``[x0, x1)`` (and ``[y0, y1)`` when given)."""
    selected = []
    for item in items:
        if item.position is None:
            continue
        if not x0 <= item.position.x < x1:
            continue
        if y0 is not None and item.position.y < y0:
            continue
        if y1 is not None and item.position.y >= y1:
            continue
        selected.append(item)
    return selected


def partition_by_kind(items):
    groups = {}
    for item in items:
        groups.setdefault(item.kind, []).append(item)
    return groups


def find_duplicates(items, key_fn):
    """Group items sharing ``key_fn(item)``.

    The first item seen for a key is the canonical one; later items with the
    same key are duplicate candidates. Items keyed ``None`` are ignored and
    only keys with more than one member are returned, in order of their
    first occurrence.
    """
    groups = {}
    for item in items:
        key = key_fn(item)
        if key is None:
            continue
        if key in groups:
            groups[key].duplicates.append(item)
        else:
            groups[key] = DuplicateGroup(key=key, canonical=item)
    return [group for group in groups.values() if group.duplicates]


def find_proximate(items, threshold):
    """Pairs of positioned items closer than ``threshold`` to each other.

    Compares every unordered pair, so this is O(n^2). Fine for a board of a
    few hundred items; do not feed it a whole org.
    """
    positioned = [item for item in items if item.position is not None]
    pairs = []
    for i, first in enumerate(positioned):
        for second in positioned[i + 1:]:
            if first.id == second.id:
                continue
            distance = first.position.distance_to(second.position)
            if distance < threshold:
                pairs.append((first, second, distance))
    return pairs
