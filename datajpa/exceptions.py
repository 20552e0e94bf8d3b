"""
Exception hierarchy for datajpa.

"No match" is never an error: list queries return an empty list, single
queries return None and optional queries return an empty OptionalResult.
"""


class DataJpaException(Exception):
    """Base exception for all datajpa errors."""

    pass


class ConfigurationException(DataJpaException):
    """Raised when configuration values are invalid."""

    pass


class EntityException(DataJpaException):
    """Raised when an @Entity declaration is invalid."""

    pass


class QueryException(DataJpaException):
    """Raised when a derived method name or @Query text cannot be compiled or bound."""

    pass


class InvalidStateException(DataJpaException):
    """Raised when an operation invariant is violated, e.g. inserting an entity that already has an id."""

    pass


class EntityNotFoundException(DataJpaException):
    """Raised when deleting or updating an identity that is not in the store."""

    def __init__(self, entity_name: str, entity_id):
        self.entity_name = entity_name
        self.entity_id = entity_id
        super().__init__(f"{entity_name} with id {entity_id!r} not found")


class MultipleResultsException(DataJpaException):
    """Raised when a single-result query matches more than one row."""

    def __init__(self, method_name: str, count: int):
        self.method_name = method_name
        self.count = count
        super().__init__(
            f"Query method '{method_name}' expected at most one result but found {count}"
        )


class DatabaseNotInitializedException(DataJpaException):
    """Raised when a repository is used before a database adapter is set."""

    def __init__(self):
        super().__init__(
            "Database adapter not initialized. Call initialize_database() or "
            "set_database_adapter() first, or pass an adapter to the repository."
        )
