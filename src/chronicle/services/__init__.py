"""Long-running services.

Services are the top layer of the diamond DAG, depending on
[chronicle.curation][chronicle.curation], [chronicle.core][chronicle.core],
[chronicle.utils][chronicle.utils], and [chronicle.models][chronicle.models].
Each service extends [BaseService][chronicle.core.base_service.BaseService]
and implements ``async def run()`` for one cycle of work.

Attributes:
    RefreshScheduler: Periodic owner profile refresh, trust-network rebuild
        and archival pass.
"""

from .refresher import ChronicleConfig, RefreshScheduler


__all__ = [
    "ChronicleConfig",
    "RefreshScheduler",
]
