"""
pressgate/services/writes.py - Authoritative write path.

Every mutation of posts, comments and site settings goes through
`AuthoritativeWriter.submit`, which hands the write and the storage policy
check to the store's transactional `apply_if_permitted`.

A PermissionDenied from the storage policy is final. StoreUnavailable is a
transient infrastructure failure and is retried with exponential backoff.
"""
from __future__ import annotations

import asyncio
import logging

from pressgate.core.errors import StoreUnavailable
from pressgate.repositories.store import DocumentStore, Write
from pressgate.services.storage_policy import StoragePolicy

logger = logging.getLogger("pressgate.writes")


class AuthoritativeWriter:
    def __init__(self, store: DocumentStore, policy: StoragePolicy, *, attempts: int = 3, base_delay: float = 0.2):
        self.store = store
        self.policy = policy
        self.attempts = max(1, attempts)
        self.base_delay = base_delay

    async def submit(self, write: Write) -> str:
        """Apply `write` if the storage policy permits it; returns the document id."""
        for attempt in range(1, self.attempts + 1):
            try:
                return await asyncio.to_thread(self.store.apply_if_permitted, write, self.policy.check)
            except StoreUnavailable as exc:
                if attempt == self.attempts:
                    logger.warning(
                        "Giving up on %s %s/%s after %d attempts: %s",
                        write.op, write.collection, write.doc_id, attempt, exc,
                    )
                    raise
                delay = self.base_delay * (2 ** (attempt - 1))
                logger.info("Store unavailable (attempt %d/%d), retrying in %.2fs", attempt, self.attempts, delay)
                await asyncio.sleep(delay)
        raise StoreUnavailable("write was not attempted")
