"""Product catalog CRUD."""

from typing import Optional

from database import NEWEST_FIRST, PRODUCTS, DocumentStore, create_document, get_documents, insert_ack, parse_object_id, to_dict, utcnow
from errors import InvalidArgument, NotFound
from log_config import get_logger
from schemas import ProductIn, ProductUpdate

logger = get_logger(__name__)

HOME_LIMIT = 6


class ProductCatalog:
    def __init__(self, store: DocumentStore):
        self.store = store

    def create(self, product: ProductIn) -> dict:
        product_id = create_document(self.store, PRODUCTS, product.to_document())
        logger.info("Product created", product_id=product_id, show_on_home=product.show_on_home)
        return insert_ack(product_id)

    def list(self, category: Optional[str] = None) -> list:
        filt = {"category": category} if category else {}
        return get_documents(self.store, PRODUCTS, filt, sort=NEWEST_FIRST)

    def home(self) -> list:
        return get_documents(self.store, PRODUCTS, {"showOnHome": True}, sort=NEWEST_FIRST, limit=HOME_LIMIT)

    def get(self, product_id: str) -> dict:
        oid = parse_object_id(product_id)
        return to_dict(self.store.find_one(PRODUCTS, {"_id": oid})) or {}

    def update(self, product_id: str, payload: ProductUpdate) -> dict:
        oid = parse_object_id(product_id)
        updates = payload.changes()
        if not updates:
            raise InvalidArgument("No fields to update")
        updates["updatedAt"] = utcnow()
        matched = self.store.update_one(PRODUCTS, {"_id": oid}, updates)
        if not matched:
            raise NotFound("Product not found")
        return {"matchedCount": matched}

    def delete(self, product_id: str) -> dict:
        oid = parse_object_id(product_id)
        deleted = self.store.delete_one(PRODUCTS, {"_id": oid})
        if not deleted:
            raise NotFound("Product not found")
        logger.info("Product deleted", product_id=product_id)
        return {"deletedCount": deleted}
