"""
FX Chains
Shared FX read/write for tracks and takes
"""

import logging
from typing import List, Optional

from ..core.logging import migration_logger
from ..core.result import WriteReport
from ..core.snapshot import FxState
from ..store.base import DocumentStore, DocumentStoreError, Handle

logger = logging.getLogger(__name__)


def parse_fx_chain(store: DocumentStore, owner: Handle) -> List[FxState]:
    return [store.get_fx(owner, i) for i in range(store.count_fx(owner))]


def write_fx_chain(
    store: DocumentStore,
    owner: Handle,
    chain: List[FxState],
    report: WriteReport,
    entity_key: str,
    clear_existing: bool = True,
    source: Optional[DocumentStore] = None,
    source_owner: Optional[Handle] = None,
) -> None:
    """
    Write an FX chain onto a track or take

    Clones every FX from ``source_owner`` when a live source is available,
    keeping vendor plugin state. Otherwise rebuilds each FX by name and
    restores preset, parameters, enabled and offline; FX that cannot be
    instantiated by name are dropped.
    """
    if clear_existing:
        for i in range(store.count_fx(owner) - 1, -1, -1):
            store.delete_fx(owner, i)

    if source is not None and source_owner is not None:
        if _clone_chain(store, owner, source, source_owner, report, entity_key):
            return

    if chain:
        report.fallback(entity_key, "fallback: FX rebuilt by name")
        migration_logger.log_fallback(report.section, entity_key, "FX rebuilt by name")

    for fx in chain:
        if not fx.name:
            continue
        index = store.add_fx_by_name(owner, fx.name)
        if index is None:
            logger.warning(f"Could not instantiate FX '{fx.name}' on {entity_key}")
            continue

        if fx.preset:
            store.set_fx_preset(owner, index, fx.preset)
        for param, value in enumerate(fx.params):
            store.set_fx_param(owner, index, param, value)
        store.set_fx_enabled(owner, index, fx.enabled)
        store.set_fx_offline(owner, index, fx.offline)
        report.written += 1


def _clone_chain(
    store: DocumentStore,
    owner: Handle,
    source: DocumentStore,
    source_owner: Handle,
    report: WriteReport,
    entity_key: str,
) -> bool:
    try:
        count = source.count_fx(source_owner)
    except DocumentStoreError as e:
        logger.warning(f"Source FX chain unavailable for {entity_key}: {e}")
        return False

    for i in range(count):
        if not store.copy_fx(source, source_owner, i, owner):
            # Nothing cloned yet when the binding refuses the first copy
            if i == 0:
                return False
            logger.warning(f"FX {i} could not be cloned onto {entity_key}")
            continue
        report.written += 1
    return True
