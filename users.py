"""User directory: registration, role changes and account status."""

from database import NEWEST_FIRST, USERS, DocumentStore, create_document, get_documents, insert_ack, parse_object_id, to_dict
from errors import Conflict, InvalidArgument, NotFound
from log_config import get_logger
from schemas import Role, UserIn, UserStatus

logger = get_logger(__name__)

# Legal account status moves. Anything else is rejected with Conflict.
STATUS_TRANSITIONS = {
    UserStatus.pending: {UserStatus.approved, UserStatus.suspended},
    UserStatus.approved: {UserStatus.suspended},
    UserStatus.suspended: {UserStatus.approved},
}

DUPLICATE_NOTICE = {"message": "User already exists"}


class UserDirectory:
    def __init__(self, store: DocumentStore):
        self.store = store

    def register(self, user: UserIn) -> dict:
        if user.role == Role.admin:
            raise InvalidArgument("Admin accounts cannot be self-registered")
        if self.store.find_one(USERS, {"email": user.email}):
            return dict(DUPLICATE_NOTICE)

        doc = user.to_document()
        doc["role"] = user.role.value
        doc["status"] = UserStatus.pending.value
        doc.pop("suspendReason", None)
        try:
            user_id = create_document(self.store, USERS, doc)
        except Conflict:
            # Lost a race with a concurrent registration of the same email.
            return dict(DUPLICATE_NOTICE)
        logger.info("User registered", user_id=user_id, role=doc["role"])
        return insert_ack(user_id)

    def list(self) -> list:
        return get_documents(self.store, USERS, sort=NEWEST_FIRST)

    def get_by_email(self, email: str) -> dict:
        return to_dict(self.store.find_one(USERS, {"email": email})) or {}

    def _load(self, user_id: str) -> dict:
        oid = parse_object_id(user_id)
        doc = self.store.find_one(USERS, {"_id": oid})
        if not doc:
            raise NotFound("User not found")
        return doc

    def change_role(self, user_id: str, role: Role) -> dict:
        doc = self._load(user_id)
        self.store.update_one(USERS, {"_id": doc["_id"]}, {"role": role.value})
        logger.info("User role changed", user_id=user_id, old=doc.get("role"), new=role.value)
        return {"matchedCount": 1, "role": role.value}

    def _transition(self, user_id: str, target: UserStatus, values: dict, unset=()) -> dict:
        doc = self._load(user_id)
        try:
            current = UserStatus(doc.get("status", UserStatus.pending.value))
        except ValueError:
            raise Conflict(f"User has unknown status {doc.get('status')!r}")
        if target not in STATUS_TRANSITIONS[current]:
            raise Conflict(f"Cannot move user from {current.value} to {target.value}")
        values = dict(values, status=target.value)
        self.store.update_one(USERS, {"_id": doc["_id"]}, values, unset=unset)
        logger.info("User status changed", user_id=user_id, old=current.value, new=target.value)
        return {"matchedCount": 1, "status": target.value}

    def approve(self, user_id: str) -> dict:
        return self._transition(user_id, UserStatus.approved, {}, unset=("suspendReason",))

    def suspend(self, user_id: str, reason: str) -> dict:
        return self._transition(user_id, UserStatus.suspended, {"suspendReason": reason})
