"""Database exceptions."""


class DatabaseError(Exception):
    """Base exception for database errors."""
    pass


class DatabaseConnectionError(DatabaseError):
    """Raised when the connection pool cannot be created or used."""
    pass


class DatabaseSchemaError(DatabaseError):
    """Raised when schema loading or migration fails."""
    pass
