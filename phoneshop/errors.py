"""
Data-access errors

Raised by repositories and store adapters. Routers translate them to HTTP codes.
"""


class DataAccessError(Exception):
    """Base class for all data-access failures raised by this package"""


class ValidationError(DataAccessError):
    """Input rejected before any write (duplicate identifier, missing field)"""


class NotFoundError(DataAccessError):
    """Requested entity does not exist"""

    def __init__(self, collection: str, doc_id: str):
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(f"{collection}/{doc_id} not found")


class IndexUnavailableError(DataAccessError):
    """Query needs a composite index that is missing or still building"""


class TransientConflictError(DataAccessError):
    """Transaction kept conflicting with concurrent writers and gave up"""


class SettlementStateError(ValidationError):
    """Settlement cannot make the requested status transition"""
