"""Purchase history and refunds."""

import logging

from ticketing.domain import PurchaseId, PurchaseRecord, PurchaseStatus
from ticketing.domain.errors import (
    InvalidIdError,
    InvalidStatusTransitionError,
    PurchaseNotFoundError,
)
from ticketing.services.ledger import InventoryLedger
from ticketing.stores.interfaces import PurchaseStore

logger = logging.getLogger(__name__)


class PurchaseService:
    """Read and settle purchases after admission."""

    def __init__(self, store: PurchaseStore, ledger: InventoryLedger) -> None:
        self._store = store
        self._ledger = ledger

    def list_purchases(self, requester: str) -> list[PurchaseRecord]:
        """Return a requester's purchases, newest first."""
        return self._store.list_for_requester(requester)

    def get_purchase(self, purchase_id: str) -> PurchaseRecord:
        """Return a purchase by ID.

        Raises:
            InvalidIdError: If the purchase_id is not a valid UUID.
            PurchaseNotFoundError: If the purchase does not exist.
        """
        record = self._store.get_purchase(self._parse_id(purchase_id))
        if record is None:
            raise PurchaseNotFoundError(purchase_id)
        return record

    def refund_purchase(self, purchase_id: str) -> PurchaseRecord:
        """Mark a confirmed purchase refunded and return its units to inventory.

        Raises:
            InvalidIdError: If the purchase_id is not a valid UUID.
            PurchaseNotFoundError: If the purchase does not exist.
            InvalidStatusTransitionError: If the purchase is not confirmed.
        """
        record = self.get_purchase(purchase_id)
        # Re-read under the class guard: units go back to inventory once.
        with self._ledger.guard(record.ticket_class_id):
            record = self.get_purchase(purchase_id)
            if not record.can_transition_to(PurchaseStatus.REFUNDED):
                raise InvalidStatusTransitionError(
                    record.status.value, PurchaseStatus.REFUNDED.value
                )
            self._ledger.refund_sale(record.ticket_class_id, record.quantity)
            refunded = self._store.update_status(record.id, PurchaseStatus.REFUNDED)
        logger.info("Purchase %s refunded (%d unit(s))", record.id, record.quantity)
        return refunded

    @staticmethod
    def _parse_id(purchase_id: str) -> PurchaseId:
        try:
            return PurchaseId.from_string(purchase_id)
        except (ValueError, TypeError, AttributeError):
            raise InvalidIdError("purchase")
