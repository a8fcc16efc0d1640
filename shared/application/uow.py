"""
Unit of Work Pattern

Wraps one use case in a database transaction. Domain events collected
from aggregates, and any callbacks queued with ``after_commit``, run only
once the outermost transaction has committed. On rollback they are dropped.
"""

from abc import ABC, abstractmethod
from typing import Callable, List
import logging

from django.db import transaction

from shared.domain.base import Aggregate, DomainEvent

logger = logging.getLogger(__name__)


class AbstractUnitOfWork(ABC):
    """Abstract Unit of Work pattern"""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            self.commit()
        else:
            self.rollback()

    @abstractmethod
    def commit(self):
        """Commit the transaction"""

    @abstractmethod
    def rollback(self):
        """Rollback the transaction"""

    @abstractmethod
    def collect_events(self, aggregate: Aggregate):
        """Collect events from aggregate root"""


class DjangoUnitOfWork(AbstractUnitOfWork):
    """
    Django implementation of Unit of Work

    Usage:
        with DjangoUnitOfWork() as uow:
            booking = booking_repo.get_by_id(booking_id)
            booking.transition_to(BookingStatus.CONFIRMED, requested_by=user_id)
            booking_repo.save(booking)
            uow.collect_events(booking)
        # BookingStatusChanged is published here, after commit
    """

    def __init__(self):
        self._events: List[DomainEvent] = []
        self._callbacks: List[Callable[[], None]] = []
        self._transaction = None

    def __enter__(self):
        """Start database transaction"""
        self._transaction = transaction.atomic()
        self._transaction.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        try:
            if exc_type is None:
                self.commit()
            else:
                self.rollback()
        finally:
            if self._transaction:
                self._transaction.__exit__(exc_type, exc_val, exc_tb)

    def commit(self):
        """
        Schedule event publishing for after the commit

        transaction.on_commit() runs the callback when the outermost
        atomic block commits, and never if it rolls back.
        """
        events = self._events.copy()
        callbacks = self._callbacks.copy()
        self._events.clear()
        self._callbacks.clear()

        logger.debug(f"Committing unit of work with {len(events)} events, {len(callbacks)} callbacks")

        if callbacks:
            transaction.on_commit(lambda: self._run_callbacks(callbacks))
        if events:
            transaction.on_commit(lambda: self._publish_events(events))

    def rollback(self):
        """Discard everything queued in this unit of work"""
        logger.warning(
            f"Rolling back unit of work, discarding {len(self._events)} events "
            f"and {len(self._callbacks)} callbacks"
        )
        self._events.clear()
        self._callbacks.clear()

    def collect_events(self, aggregate: Aggregate):
        new_events = aggregate.events
        if new_events:
            self._events.extend(new_events)
            aggregate.clear_events()
            logger.debug(
                f"Collected {len(new_events)} events from "
                f"{aggregate.__class__.__name__} (ID: {aggregate.id})"
            )

    def after_commit(self, callback: Callable[[], None]):
        """Queue a side effect that must only happen if this unit of work commits"""
        self._callbacks.append(callback)

    def _run_callbacks(self, callbacks: List[Callable[[], None]]):
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.error(f"Post-commit callback failed: {e}", exc_info=True)

    def _publish_events(self, events: List[DomainEvent]):
        from shared.application.message_bus import message_bus

        logger.info(f"Publishing {len(events)} domain events after commit")

        try:
            message_bus.publish_events(events)
        except Exception as e:
            # The data is already committed; a broken publisher must not surface to the caller
            logger.error(f"Error publishing events: {e}", exc_info=True)
