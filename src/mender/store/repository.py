"""Composite pattern store.

PatternStore composes the domain mixins over PatternStoreBase. Concrete
backends subclass it and supply document persistence only.
"""

from mender.store.base import PatternStoreBase
from mender.store.issues import CommonIssueMixin
from mender.store.maintenance import MaintenanceMixin
from mender.store.patterns_crud import PatternCrudMixin
from mender.store.patterns_query import PatternQueryMixin


class PatternStore(
    PatternCrudMixin,
    PatternQueryMixin,
    CommonIssueMixin,
    MaintenanceMixin,
    PatternStoreBase,
):
    """Resolution pattern knowledge store.

    Mixin layout:
    - PatternCrudMixin: save/load/delete, success/failure recording, feedback
    - PatternQueryMixin: ranking, similarity search, statistics
    - CommonIssueMixin: signature-keyed occurrence tallies
    - MaintenanceMixin: pruning, export and import

    Example:
        async with open_store(config) as store:
            await store.save_pattern(pattern)
            await store.update_pattern_success(pattern.id, 1500)
            best = await store.retrieve_patterns_by_rank(min_confidence=0.7)
    """

    pass
