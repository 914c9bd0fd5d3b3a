from pydantic import ValidationError
from tinydb import TinyDB, Query
from tinydb.storages import MemoryStorage

from coinmind.exceptions import LedgerError
from coinmind.models.schemas import NormalizedTransaction, Profile


def open_db(db_path: str | None = None) -> TinyDB:
    """Open the ledger file, or an in-memory database when no path is given."""
    if db_path is None:
        return TinyDB(storage=MemoryStorage)
    return TinyDB(db_path)


class TransactionRepository:
    def __init__(self, db: TinyDB):
        self.db = db
        self.table = db.table("transactions")

    def create_transaction(
        self, user_id: str, record: NormalizedTransaction
    ) -> NormalizedTransaction:
        data = record.model_dump(mode="json")
        data.pop("id", None)
        data["user_id"] = user_id
        try:
            doc_id = self.table.insert(data)
        except (OSError, ValueError) as e:
            raise LedgerError(f"Failed to save transaction: {e}", details={"user_id": user_id})
        return record.model_copy(update={"id": doc_id, "user_id": user_id})

    def list_transactions(self, user_id: str, limit: int = 1000) -> list[NormalizedTransaction]:
        Txn = Query()
        try:
            docs = self.table.search(Txn.user_id == user_id)
        except (OSError, ValueError) as e:
            raise LedgerError(f"Failed to read transactions: {e}", details={"user_id": user_id})
        # Newest first; doc ids grow with insertion order
        docs.sort(key=lambda doc: doc.doc_id, reverse=True)
        try:
            return [NormalizedTransaction(**{**doc, "id": doc.doc_id}) for doc in docs[:limit]]
        except ValidationError as e:
            raise LedgerError(
                f"Stored transaction is unreadable: {e.error_count()} error(s)",
                details={"user_id": user_id},
            )


class ProfileRepository:
    def __init__(self, db: TinyDB):
        self.db = db
        self.table = db.table("profiles")

    def find_by_id(self, user_id: str) -> Profile | None:
        Prof = Query()
        try:
            doc = self.table.get(Prof.user_id == user_id)
        except (OSError, ValueError) as e:
            raise LedgerError(f"Failed to read profile: {e}", details={"user_id": user_id})
        if doc is None:
            return None
        return Profile(**doc)

    def upsert(self, profile: Profile) -> Profile:
        Prof = Query()
        try:
            self.table.upsert(profile.model_dump(), Prof.user_id == profile.user_id)
        except (OSError, ValueError) as e:
            raise LedgerError(
                f"Failed to save profile: {e}", details={"user_id": profile.user_id}
            )
        return profile
