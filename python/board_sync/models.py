import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

KNOWN_KINDS = (
    'sticky_note',
    'shape',
    'text',
    'frame',
    'card',
    'app_card',
    'image',
    'connector',
    'document',
    'embed',
)


@dataclass(frozen=True)
class Position:
    x: float
    y: float

    def distance_to(self, other):
        return math.hypot(self.x - other.x, self.y - other.y)

    def to_dict(self):
        return {'x': self.x, 'y': self.y}


@dataclass
class RemoteItem:
    """One item of a board as returned by ``GET /boards/{id}/items``.

    ``attributes`` keeps every field other than id/type/position/parent
    untouched (``data``, ``style``, ``geometry``, timestamps, ...).
    """

    id: str
    kind: str
    position: Optional[Position] = None
    attributes: Dict[str, Any] = field(default_factory=dict)
    parent: Optional[str] = None

    @classmethod
    def from_api(cls, payload):
        attributes = {key: value for key, value in payload.items() if key not in ('id', 'type', 'position', 'parent')}

        position = None
        raw_position = payload.get('position') or {}
        if raw_position.get('x') is not None and raw_position.get('y') is not None:
            position = Position(float(raw_position['x']), float(raw_position['y']))

        parent = None
        if payload.get('parent'):
            parent = str(payload['parent'].get('id')) if payload['parent'].get('id') is not None else None

        return cls(
            id=str(payload['id']),
            kind=payload.get('type') or 'unknown',
            position=position,
            attributes=attributes,
            parent=parent,
        )

    @property
    def content(self):
        data = self.attributes.get('data') or {}
        return data.get('content') or data.get('title') or ''

    @property
    def fill_color(self):
        style = self.attributes.get('style') or {}
        return style.get('fillColor')

    def to_dict(self):
        payload = {'id': self.id, 'type': self.kind}
        if self.position is not None:
            payload['position'] = self.position.to_dict()
        if self.parent is not None:
            payload['parent'] = {'id': self.parent}
        payload.update(self.attributes)
        return payload


@dataclass(frozen=True)
class DeleteIntent:
    item_id: str
    kind: str

    def describe(self):
        return f'delete {self.kind} {self.item_id}'


@dataclass
class CreateIntent:
    kind: str
    attributes: Dict[str, Any] = field(default_factory=dict)
    position: Optional[Position] = None
    parent: Optional[str] = None
    # id of the item this one is copied from, if any
    source_id: Optional[str] = None

    def payload(self):
        """Request body for ``POST /boards/{id}/<kind endpoint>``."""
        body = dict(self.attributes)
        if self.position is not None:
            body['position'] = self.position.to_dict()
        if self.parent is not None:
            body['parent'] = {'id': self.parent}
        return body

    @property
    def content(self):
        data = self.attributes.get('data') or {}
        return data.get('content') or data.get('title') or ''

    def describe(self):
        where = f' at ({self.position.x:g}, {self.position.y:g})' if self.position else ''
        return f'create {self.kind}{where}'


@dataclass
class UpdateIntent:
    item_id: str
    kind: str
    attributes: Dict[str, Any] = field(default_factory=dict)
    position: Optional[Position] = None

    def payload(self):
        """Request body for ``PATCH /boards/{id}/<endpoint>/{item_id}``."""
        body = dict(self.attributes)
        if self.position is not None:
            body['position'] = self.position.to_dict()
        return body

    def describe(self):
        where = f' to ({self.position.x:g}, {self.position.y:g})' if self.position else ''
        return f'update {self.kind} {self.item_id}{where}'


@dataclass
class FailedIntent:
    intent: Any
    reason: str

    def to_dict(self):
        return {'intent': self.intent.describe(), 'reason': self.reason}


@dataclass
class ReconcileResult:
    applied: int = 0
    skipped: int = 0
    failed: List[FailedIntent] = field(default_factory=list)
    created: List[RemoteItem] = field(default_factory=list)
    # source item id -> id of the item created from it
    id_map: Dict[str, str] = field(default_factory=dict)

    @property
    def total(self):
        return self.applied + self.skipped + len(self.failed)

    @property
    def ok(self):
        return not self.failed

    def merge(self, other):
        """Fold the outcome of a later batch into this one."""
        self.applied += other.applied
        self.skipped += other.skipped
        self.failed.extend(other.failed)
        self.created.extend(other.created)
        self.id_map.update(other.id_map)
        return self

    def to_dict(self):
        return {
            'applied': self.applied,
            'skipped': self.skipped,
            'failed': [failure.to_dict() for failure in self.failed],
            'created': [item.id for item in self.created],
            'id_map': dict(self.id_map),
        }
