class ConfigurationError(Exception):
    """Raised for programming errors in entity, relationship or query configuration."""


class DuplicateEntityKindError(ConfigurationError):
    """Raised when an entity kind or model is registered twice."""

    def __init__(self, kind: str):
        super().__init__(f"Entity kind '{kind}' is already registered.")


class UnknownEntityKindError(ConfigurationError):
    """Raised when an entity kind is not registered."""

    def __init__(self, kind: str):
        super().__init__(f"Entity kind '{kind}' is not registered.")


class UnknownRelationshipError(ConfigurationError):
    """Raised when a relationship name is not declared for an entity kind."""

    def __init__(self, kind: str, name: str):
        super().__init__(f"Relationship '{name}' is not declared on entity kind '{kind}'.")


class UnknownAttributeError(ConfigurationError):
    """Raised when an attribute does not exist on an entity kind."""

    def __init__(self, kind: str, attribute: str):
        super().__init__(f"Attribute '{attribute}' does not exist on entity kind '{kind}'.")


class UnsupportedOperatorError(ConfigurationError):
    """Raised when a comparison operator is not supported by the query builder."""

    def __init__(self, operator: str):
        super().__init__(f"Operator '{operator}' is not supported.")


class UnsupportedRelationOperationError(ConfigurationError):
    """Raised when an operation is not available for a relationship kind."""

    def __init__(self, name: str, operation: str):
        super().__init__(f"Relationship '{name}' does not support '{operation}'.")


class IntegrityError(Exception):
    """Raised when a storage constraint is violated."""

    def __init__(self, detail: str):
        super().__init__(f"Integrity constraint violated: {detail}")


class EnvNotFoundError(Exception):
    """Raised when a required environment variable is not found."""

    def __init__(self, env_var_name: str):
        super().__init__(f"Environment variable '{env_var_name}' not found.")


class SessionNotSetError(Exception):
    """Raised when the database session is not set."""

    def __init__(self):
        super().__init__("Database session is not set.")


class EmptyIterableError(Exception):
    """Raised when an iterable is empty but should contain items."""

    def __init__(self, iterable_name: str):
        super().__init__(f"The iterable '{iterable_name}' is empty but should contain items.")
