from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from .models import DEFAULT_NAMESPACE, Declaration

LOGGER = logging.getLogger('chainradar.declarations')

DECLARED_KINDS = ('User', 'Group', 'Component')


def _strings(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(str(item).strip() for item in value if str(item).strip())


def _interactions(value: Any) -> tuple[Any, ...]:
    if not isinstance(value, list):
        return ()
    entries: list[Any] = []
    for item in value:
        if isinstance(item, dict) and item.get('name'):
            entries.append({'name': str(item['name']).strip(), 'description': str(item.get('description', ''))})
        elif isinstance(item, str) and item.strip():
            entries.append(item.strip())
    return tuple(entries)


def parse_declaration(raw: Any) -> Declaration | None:
    """Build a declaration from a catalog-shaped entity dict.

    Returns None for entries that are not users, groups or components or
    that have no name.
    """
    if not isinstance(raw, dict):
        return None
    kind = str(raw.get('kind', '')).strip()
    metadata = raw.get('metadata') if isinstance(raw.get('metadata'), dict) else {}
    spec = raw.get('spec') if isinstance(raw.get('spec'), dict) else {}
    name = str(metadata.get('name', '')).strip()
    if kind not in DECLARED_KINDS or not name:
        return None
    annotations = metadata.get('annotations') if isinstance(metadata.get('annotations'), dict) else {}
    return Declaration(
        kind=kind,
        name=name,
        namespace=str(metadata.get('namespace') or DEFAULT_NAMESPACE),
        title=str(metadata.get('title', '')),
        description=str(metadata.get('description', '')),
        owner=str(spec.get('owner', '')),
        system=str(spec.get('system', '')),
        component_type=str(spec.get('type', '')),
        lifecycle=str(spec.get('lifecycle') or 'production'),
        tags=_strings(metadata.get('tags')),
        interacts_with=_interactions(spec.get('interactsWith')),
        deployed_at=_strings(spec.get('deployedAt')),
        deprecated=_strings(spec.get('deprecated')),
        annotations={str(key): str(value) for key, value in annotations.items()}
    )


def load_declarations(path: str | Path) -> list[Declaration]:
    path = Path(path)
    if not path.exists():
        LOGGER.warning('declarations file missing path=%s', path)
        return []
    try:
        payload = json.loads(path.read_text(encoding='utf-8'))
    except (OSError, json.JSONDecodeError) as exc:
        LOGGER.warning('declarations file unreadable path=%s error=%s', path, exc)
        return []
    if not isinstance(payload, dict) or not isinstance(payload.get('entities'), list):
        return []

    declarations: list[Declaration] = []
    for raw in payload['entities']:
        declaration = parse_declaration(raw)
        if declaration is None:
            LOGGER.debug('skipping entity %r', raw)
            continue
        declarations.append(declaration)
    return declarations
