"""
Record helpers shared by the ledger engines.

Loading and validating go through here so every engine turns pydantic
validation failures and missing ids into the same ledger errors.
"""

from typing import Any, Optional, TypeVar, Union

from pydantic import ValidationError

from committee_ledger.models.ledger import (
    Committee,
    CommitteeState,
    Draw,
    LedgerRecord,
    Member,
    Pair,
    Payment,
)
from committee_ledger.services.storage import (
    Collection,
    ConflictError,
    EntityStore,
    Index,
    NotFoundError,
    StorageTransaction,
)


M = TypeVar("M", bound=LedgerRecord)

# Either a whole store or an open transaction; both expose the same reads
Reader = Union[EntityStore, StorageTransaction]

COLLECTION_MODELS: dict[Collection, type[LedgerRecord]] = {
    Collection.COMMITTEES: Committee,
    Collection.MEMBERS: Member,
    Collection.PAIRS: Pair,
    Collection.PAYMENTS: Payment,
    Collection.DRAWS: Draw,
}


def validate_entity(model: type[M], **data: Any) -> M:
    """
    Build a model from user input.

    Raises:
        ConflictError: If the input violates the model's rules
    """
    try:
        return model(**data)
    except ValidationError as e:
        issues = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or model.__name__}: {err['msg']}"
            for err in e.errors()
        )
        raise ConflictError(f"Invalid {model.__name__.lower()}: {issues}") from e


async def fetch(reader: Reader, collection: Collection, record_id: int) -> Optional[LedgerRecord]:
    record = await reader.get(collection, record_id)
    if record is None:
        return None
    return COLLECTION_MODELS[collection].from_record(record)


async def require(reader: Reader, collection: Collection, record_id: int) -> LedgerRecord:
    """
    Load one record or fail.

    Raises:
        NotFoundError: If no record has that id
    """
    entity = await fetch(reader, collection, record_id)
    if entity is None:
        noun = collection.value.rstrip("s")
        raise NotFoundError(f"No {noun} with id {record_id}")
    return entity


async def list_for_committee(reader: Reader, collection: Collection, committee_id: int) -> list:
    records = await reader.get_by_index(collection, Index.COMMITTEE_ID, committee_id)
    model = COLLECTION_MODELS[collection]
    return [model.from_record(r) for r in records]


async def load_committee_state(reader: Reader, committee_id: int) -> CommitteeState:
    """
    Load a committee with all of its members, pairs, payments and draws.

    The reader must cover all five collections when it is a transaction.
    """
    committee = await require(reader, Collection.COMMITTEES, committee_id)
    return CommitteeState(
        committee=committee,
        members=await list_for_committee(reader, Collection.MEMBERS, committee_id),
        pairs=await list_for_committee(reader, Collection.PAIRS, committee_id),
        payments=await list_for_committee(reader, Collection.PAYMENTS, committee_id),
        draws=await list_for_committee(reader, Collection.DRAWS, committee_id),
    )
