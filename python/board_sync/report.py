import datetime
import json
import os
from dataclasses import dataclass, field
from typing import Dict, List

from .classifier import categorize_color


@dataclass
class Report:
    total_before: int
    total_after: int
    by_kind: Dict[str, Dict[str, int]] = field(default_factory=dict)
    by_color: Dict[str, Dict[str, int]] = field(default_factory=dict)
    added: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)

    def to_dict(self):
        return {
            'total_before': self.total_before,
            'total_after': self.total_after,
            'by_kind': self.by_kind,
            'by_color': self.by_color,
            'added': self.added,
            'removed': self.removed,
        }

    def kind_rows(self):
        return [{'kind': kind, 'before': counts['before'], 'after': counts['after']} for kind, counts in self.by_kind.items()]


def _count(items, key_fn):
    counts = {}
    for item in items:
        key = key_fn(item)
        if key is None:
            continue
        counts[key] = counts.get(key, 0) + 1
    return counts


def _merge_counts(before, after):
    keys = sorted(set(before) | set(after))
    return {key: {'before': before.get(key, 0), 'after': after.get(key, 0)} for key in keys}


def _color_group(item):
    if not item.fill_color:
        return None
    return categorize_color(item.fill_color)


def summarize(before, after=None):
    """Before/after summary of two snapshots of the same board.

    With no ``after`` snapshot the board is summarized as unchanged.
    """
    before = list(before)
    after = before if after is None else list(after)

    before_ids = {item.id for item in before}
    after_ids = {item.id for item in after}

    return Report(
        total_before=len(before),
        total_after=len(after),
        by_kind=_merge_counts(_count(before, lambda item: item.kind), _count(after, lambda item: item.kind)),
        by_color=_merge_counts(_count(before, _color_group), _count(after, _color_group)),
        added=[item.id for item in after if item.id not in before_ids],
        removed=[item.id for item in before if item.id not in after_ids],
    )


def summarize_result(result):
    summary = result.to_dict()
    summary['total'] = result.total
    summary['ok'] = result.ok
    return summary


def json_to_csv(rows):
    if not rows:
        return ''

    headers = list(rows[0].keys())
    csv = ','.join(headers) + '\n'

    def escape_csv(value):
        if value is None:
            return ''
        if not isinstance(value, str):
            value = str(value)
        if '"' in value:
            value = value.replace('"', '""')
        if ',' in value or '"' in value or '\n' in value:
            value = f'"{value}"'
        return value

    for row in rows:
        csv += ','.join(escape_csv(row.get(header)) for header in headers) + '\n'
    return csv


def write_json(payload, directory, name):
    """Write ``<name>.json`` into ``directory``, stamped with the current time."""
    if not os.path.exists(directory):
        os.makedirs(directory)

    stamped = {'generated_at': datetime.datetime.now().isoformat()}
    stamped.update(payload)

    json_path = os.path.join(directory, f'{name}.json')
    with open(json_path, 'w') as file:
        json.dump(stamped, file, indent=2)
    return json_path


def write_report(report, directory, name, extra=None):
    """Write ``<name>.json`` and ``<name>_by_kind.csv`` into ``directory``."""
    payload = report.to_dict()
    if extra:
        payload.update(extra)
    json_path = write_json(payload, directory, name)

    csv_path = os.path.join(directory, f'{name}_by_kind.csv')
    with open(csv_path, 'w') as file:
        file.write(json_to_csv(report.kind_rows()))

    return json_path, csv_path


def write_snapshot(items, path):
    directory = os.path.dirname(path)
    if directory and not os.path.exists(directory):
        os.makedirs(directory)
    with open(path, 'w') as file:
        json.dump([item.to_dict() for item in items], file, indent=2)
    return path
