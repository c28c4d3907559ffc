"""
Custom exceptions for sqlkg_db module.
"""


class DatabaseError(Exception):
    """Raised when a database backend operation fails."""
    pass


class ConnectionError(DatabaseError):
    """Raised when the backend cannot open its database."""
    pass


class IntrospectionError(DatabaseError):
    """Raised when tables, columns or keys cannot be read from the catalog."""
    pass


class QueryError(DatabaseError):
    """Raised when a row query fails to execute or iterate."""
    pass
