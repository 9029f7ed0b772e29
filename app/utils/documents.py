from pydantic import ValidationError
from typing import Callable, Iterable, List, TypeVar
import logging

logger = logging.getLogger(__name__)

T = TypeVar("T")


def parse_documents(docs: Iterable, parser: Callable[[str, dict], T], collection_name: str) -> List[T]:
    """
    Parse Firestore snapshots one by one.
    A document that does not fit the model is logged and skipped.
    """
    records = []
    for doc in docs:
        try:
            records.append(parser(doc.id, doc.to_dict() or {}))
        except ValidationError as e:
            logger.warning(f"Skipping malformed document {doc.id} in {collection_name}: {e.errors()}")
    return records
