"""
In-memory conversation store
Holds contexts for the lifetime of the process
"""

import asyncio
import threading
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

import structlog

from mcp_paywall.errors import ContextNotFoundError
from mcp_paywall.models import Context, Message, Role

logger = structlog.get_logger()


class ContextStore:
    """
    Table of contexts keyed by id

    Appends to a single context are serialized by a store-wide lock so the
    stored order always matches arrival order. A separate per-context
    asyncio lock lets the HTTP layer keep a user message and its reply
    adjacent.
    """

    def __init__(self):
        self._contexts: Dict[str, Context] = {}
        self._lock = threading.Lock()
        self._turn_locks: Dict[str, asyncio.Lock] = {}

    def create(self, metadata: Optional[Dict[str, Any]] = None) -> Context:
        """Allocate a new context with an empty message sequence"""
        context = Context(metadata=dict(metadata or {}))
        with self._lock:
            if context.id in self._contexts:
                raise RuntimeError(f"Context id collision: {context.id}")
            self._contexts[context.id] = context
            self._turn_locks[context.id] = asyncio.Lock()

        logger.info("context_created", context_id=context.id)
        return self._snapshot(context)

    def get(self, context_id: str) -> Context:
        """Return a snapshot of a context"""
        with self._lock:
            return self._snapshot(self._require(context_id))

    def list(self) -> List[Context]:
        """All contexts in creation order"""
        with self._lock:
            return [self._snapshot(c) for c in self._contexts.values()]

    def append_message(self, context_id: str, role: Role, content: str) -> Message:
        """Append a message and return it with its server-assigned id and timestamp"""
        message = Message(role=Role(role), content=content)
        with self._lock:
            self._require(context_id).messages.append(message)

        logger.debug(
            "message_appended",
            context_id=context_id,
            message_id=message.id,
            role=message.role.value
        )
        return message

    def set_processing_metadata(self, context_id: str, metadata: Optional[Dict[str, Any]]) -> None:
        """Record the outcome of the most recent turn"""
        with self._lock:
            self._require(context_id).last_processing_metadata = metadata

    @asynccontextmanager
    async def conversation(self, context_id: str) -> AsyncIterator[None]:
        """Hold the context exclusively for one request/response turn"""
        with self._lock:
            self._require(context_id)
            lock = self._turn_locks[context_id]
        async with lock:
            yield

    def __len__(self) -> int:
        return len(self._contexts)

    def _require(self, context_id: str) -> Context:
        context = self._contexts.get(context_id)
        if context is None:
            raise ContextNotFoundError(context_id)
        return context

    @staticmethod
    def _snapshot(context: Context) -> Context:
        return context.model_copy(update={
            "messages": list(context.messages),
            "metadata": dict(context.metadata),
        })
