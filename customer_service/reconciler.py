"""
Verification webhook: the orders service asks whether a customer still exists.

Absent customers are announced as deleted on the client actions topic so the
orders service can purge its side; present customers are confirmed on the
client order actions topic. The store is only read here.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from broker import TOPIC_CLIENT_ACTIONS, TOPIC_CLIENT_ORDER_ACTIONS, MessageBroker
from common.errors import ProtocolError
from common.models import (
    ClientDeletedEvent,
    ClientExistsEvent,
    PushEnvelope,
    ReconciliationOutcome,
    VerificationMessage,
)
from common.storage import CustomerStore

logger = logging.getLogger(__name__)

VERIF_CLIENT = "VERIF_CLIENT"


def decode_envelope(envelope: Any) -> VerificationMessage:
    """Unwrap `{message: {data: <base64 JSON>}}`. The shape is checked before any decoding."""
    try:
        parsed = PushEnvelope.model_validate(envelope)
    except PydanticValidationError as e:
        raise ProtocolError("Invalid message format") from e
    if parsed.message is None or not parsed.message.data:
        raise ProtocolError("Invalid message format")

    try:
        raw = base64.b64decode(parsed.message.data, validate=True)
        return VerificationMessage.model_validate_json(raw)
    except (binascii.Error, ValueError) as e:
        raise ProtocolError("Invalid message payload") from e


class VerificationReconciler:
    def __init__(self, store: CustomerStore, broker: MessageBroker) -> None:
        self._store = store
        self._broker = broker

    async def handle_verification(self, envelope: Any) -> ReconciliationOutcome:
        message = decode_envelope(envelope)
        if message.action != VERIF_CLIENT:
            raise ProtocolError("Action not recognized")
        if not message.client_id:
            raise ProtocolError("Missing clientId")

        client_id = message.client_id
        if self._store.get(client_id) is None:
            await self._broker.announce(TOPIC_CLIENT_ACTIONS, ClientDeletedEvent(client_id=client_id))
            logger.info("Customer %s unknown, deletion announced", client_id)
            return ReconciliationOutcome.DELETION_ANNOUNCED

        await self._broker.announce(TOPIC_CLIENT_ORDER_ACTIONS, ClientExistsEvent(client_id=client_id))
        logger.info("Customer %s verified", client_id)
        return ReconciliationOutcome.VERIFIED
