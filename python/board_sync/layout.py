"""Board layouts kept as data.

A layout file is JSON::

    {
      "offset": {"x": 0, "y": 0},
      "items": [
        {"kind": "text", "position": {"x": 0, "y": -400},
         "data": {"content": "1. DEFINING OUTCOMES"}},
        {"kind": "sticky_note", "position": {"x": 0, "y": 0},
         "data": {"content": "Business outcome"}, "style": {"fillColor": "light_green"}}
      ]
    }

Every key other than ``kind``/``position``/``parent`` is passed to the create
endpoint untouched.
"""
import json

from .classifier import content_and_bucket_key, find_proximate, with_kind
from .client import ENDPOINTS
from .errors import LayoutError
from .models import CreateIntent, Position, UpdateIntent


def load_layout(path):
    try:
        with open(path) as file:
            layout = json.load(file)
    except (OSError, ValueError) as error:
        raise LayoutError(f'Could not read layout {path}: {error}') from error
    if not isinstance(layout, dict) or not isinstance(layout.get('items'), list):
        raise LayoutError(f'Layout {path} must be an object with an "items" list')
    return layout


def build_intents(layout):
    offset = layout.get('offset') or {}
    dx = float(offset.get('x', 0))
    dy = float(offset.get('y', 0))

    intents = []
    for index, entry in enumerate(layout['items']):
        kind = entry.get('kind')
        if kind not in ENDPOINTS:
            raise LayoutError(f'Layout item {index} has unsupported kind {kind!r}')

        position = None
        if entry.get('position'):
            try:
                position = Position(float(entry['position']['x']) + dx, float(entry['position']['y']) + dy)
            except (KeyError, TypeError, ValueError) as error:
                raise LayoutError(f'Layout item {index} has an invalid position: {error}') from error

        attributes = {key: value for key, value in entry.items() if key not in ('kind', 'position', 'parent')}
        intents.append(CreateIntent(kind=kind, attributes=attributes, position=position, parent=entry.get('parent')))
    return intents


def missing_from(intents, items, key_fn):
    """Intents whose natural key is not on the board yet.

    ``key_fn`` is applied to both board items and intents, so it must only
    use attributes the two share (``kind``, ``content``, ``position``).
    Intents keyed ``None`` are always kept.
    """
    present = {key_fn(item) for item in items}
    present.discard(None)
    return [intent for intent in intents if key_fn(intent) is None or key_fn(intent) not in present]


def natural_key(bucket_size):
    """(kind, normalized text, position bucket) key shared by items and intents."""
    return with_kind(content_and_bucket_key(bucket_size))


def spread_intents(items, threshold):
    """Moves that push the second item of each too-close pair away from the first.

    The moved item keeps its direction from the anchor and ends up exactly
    ``threshold`` away (straight to the right when both sit on the same
    spot). Pairs in different parents are left alone, their coordinates are
    not comparable. An item is moved at most once per pass, so a tight
    cluster can need another run.
    """
    moved = {}
    intents = []
    for first, second, _ in find_proximate(items, threshold):
        if first.parent != second.parent or second.id in moved:
            continue
        anchor = moved.get(first.id, first.position)
        dx = second.position.x - anchor.x
        dy = second.position.y - anchor.y
        distance = (dx * dx + dy * dy) ** 0.5
        if distance >= threshold:
            continue
        if distance == 0:
            ux, uy = 1.0, 0.0
        else:
            ux, uy = dx / distance, dy / distance
        target = Position(round(anchor.x + ux * threshold, 2), round(anchor.y + uy * threshold, 2))
        moved[second.id] = target
        intents.append(UpdateIntent(second.id, second.kind, position=target))
    return intents


# fields the create endpoints accept back from a fetched item
COPY_FIELDS = ('data', 'style', 'geometry')
COPYABLE_KINDS = ('sticky_note', 'shape', 'text', 'card', 'frame')


def copy_intent(item):
    attributes = {}
    for name in COPY_FIELDS:
        value = item.attributes.get(name)
        if value:
            attributes[name] = dict(value)
    geometry = attributes.get('geometry')
    if item.kind == 'sticky_note' and geometry:
        # sticky notes take either width or height, never both
        attributes['geometry'] = {'width': geometry['width']} if 'width' in geometry else {'height': geometry['height']}
    return CreateIntent(
        kind=item.kind,
        attributes=attributes,
        position=item.position,
        parent=item.parent,
        source_id=item.id,
    )


def copy_intents(items):
    """Create intents reproducing ``items`` on another board.

    Returns ``(intents, skipped)``; ``skipped`` holds the items of kinds that
    cannot be recreated from their fetched payload. ``parent`` on the intents
    still points at the source board and must be remapped by the caller.
    """
    intents = []
    skipped = []
    for item in items:
        if item.kind in COPYABLE_KINDS:
            intents.append(copy_intent(item))
        else:
            skipped.append(item)
    return intents, skipped
