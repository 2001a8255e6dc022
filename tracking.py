"""Append-only shipment tracking log.

Steps are never updated or deleted, so an order's timeline only grows.
"""

from pymongo import ASCENDING

from database import TRACKING, DocumentStore, get_documents, insert_ack, parse_object_id, utcnow
from log_config import get_logger
from schemas import TrackingStepIn

logger = get_logger(__name__)

CHRONOLOGICAL = [("timestamp", ASCENDING), ("_id", ASCENDING)]


class TrackingLog:
    def __init__(self, store: DocumentStore):
        self.store = store

    def append(self, order_id: str, step: TrackingStepIn) -> dict:
        parse_object_id(order_id)
        doc = {k: v for k, v in step.to_document().items() if k not in ("_id", "id")}
        doc["orderId"] = order_id
        doc["timestamp"] = utcnow()
        step_id = self.store.insert_one(TRACKING, doc)
        logger.info("Tracking step recorded", order_id=order_id, stage=doc.get("stage"))
        return insert_ack(step_id)

    def timeline(self, order_id: str) -> list:
        parse_object_id(order_id)
        return get_documents(self.store, TRACKING, {"orderId": order_id}, sort=CHRONOLOGICAL)
