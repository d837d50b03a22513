"""Side-Effect Repository - Retry queue for audit entries and in-app notifications"""
from .outbox_queue import OutboxQueue
from ..domain.models import PendingSideEffect


class SideEffectRepository(OutboxQueue[PendingSideEffect]):
    """
    Side effects whose first write failed.

    The stored document is replayed as-is, so a replay that races a late
    first write lands on the same id instead of duplicating.
    """

    collection_name = "side_effect_outbox"
    model = PendingSideEffect
    item_label = "side effect"
    done_field = "applied_at"
