"""
Envelopes
Shared automation read/write for track and take envelopes
"""

import logging
from typing import Callable, List, Optional

from ..core.keys import normalize_take_envelope_name, normalize_track_envelope_name
from ..core.result import WriteReport
from ..core.snapshot import Envelope, EnvelopePoint
from ..store.base import DocumentStore, Handle

logger = logging.getLogger(__name__)


def parse_envelopes(store: DocumentStore, owner: Handle, automation_items: bool = True) -> List[Envelope]:
    """Read every envelope of a track (with automation items) or a take"""
    envelopes = []
    for i in range(store.count_envelopes(owner)):
        env = store.get_envelope(owner, i)
        items = []
        if automation_items:
            items = [store.get_automation_item(env, ai) for ai in range(store.count_automation_items(env))]
        envelopes.append(Envelope(
            name=store.get_envelope_name(env),
            points=store.get_envelope_points(env),
            automation_items=items,
        ))
    return envelopes


def find_envelope(
    store: DocumentStore,
    owner: Handle,
    name: str,
    normalize: Optional[Callable[[str], str]] = None,
) -> Optional[Handle]:
    """Exact name match, or normalized-name match when ``normalize`` is given"""
    wanted = normalize(name) if normalize else name
    for i in range(store.count_envelopes(owner)):
        env = store.get_envelope(owner, i)
        current = store.get_envelope_name(env)
        if (normalize(current) if normalize else current) == wanted:
            return env
    return None


def ensure_envelope(
    store: DocumentStore,
    owner: Handle,
    name: str,
    normalize: Callable[[str], str],
) -> Optional[Handle]:
    """Resolve a destination envelope by name, creating standard ones on demand"""
    env = find_envelope(store, owner, name)
    if env is not None:
        return env

    env = find_envelope(store, owner, name, normalize)
    if env is not None:
        return env

    created = store.ensure_envelope(owner, normalize(name))
    if created is None:
        return None
    return find_envelope(store, owner, name) or find_envelope(store, owner, name, normalize) or created


def _replace_points(store: DocumentStore, env: Handle, points: List[EnvelopePoint], automation_item: int = -1) -> None:
    store.clear_envelope_points(env, automation_item)
    for point in points:
        store.insert_envelope_point(env, point, automation_item, sort=False)
    store.sort_envelope_points(env, automation_item)


def write_track_envelopes(
    store: DocumentStore,
    track: Handle,
    envelopes: List[Envelope],
    report: WriteReport,
    entity_key: str,
) -> None:
    """Replace points and automation items of each matching track envelope"""
    for envelope in envelopes:
        env = ensure_envelope(store, track, envelope.name, normalize_track_envelope_name)
        if env is None:
            logger.info(f"No envelope '{envelope.name}' on {entity_key}, dropped")
            report.skip(f"{entity_key}/envelope[{envelope.name}]", "envelope not available on destination")
            continue

        for ai in range(store.count_automation_items(env) - 1, -1, -1):
            store.delete_automation_item(env, ai)
        _replace_points(store, env, envelope.points)

        # Recreated automation items are unpooled
        for item in envelope.automation_items:
            index = store.insert_automation_item(env, item.position, item.length)
            if index < 0:
                continue
            store.set_automation_item_value(env, index, "start_offset", item.start_offset)
            store.set_automation_item_value(env, index, "baseline", item.baseline)
            store.set_automation_item_value(env, index, "amplitude", item.amplitude)
            store.set_automation_item_value(env, index, "loop_source", item.loop_source)
            _replace_points(store, env, item.points, index)

        report.written += 1


def write_take_envelopes(
    store: DocumentStore,
    take: Handle,
    envelopes: List[Envelope],
    report: WriteReport,
    entity_key: str,
) -> None:
    for envelope in envelopes:
        env = ensure_envelope(store, take, envelope.name, normalize_take_envelope_name)
        if env is None:
            logger.info(f"No take envelope '{envelope.name}' on {entity_key}, dropped")
            report.skip(f"{entity_key}/envelope[{envelope.name}]", "envelope not available on destination")
            continue
        _replace_points(store, env, envelope.points)
        report.written += 1
