"""Operator-side client: async API wrapper and the screens' local state."""

from .api import SalesOpsClient
from .editor import SaleEditor
from .errors import AuthError, ClientError, ConflictOrServerError, PermissionDenied, ValidationError
from .grid import SalesLedgerGrid
from .reconciliation_view import ReconciliationView
from .sequencer import RouteSequencer, check_permutation

__all__ = [
    "SalesOpsClient",
    "SaleEditor",
    "SalesLedgerGrid",
    "ReconciliationView",
    "RouteSequencer",
    "check_permutation",
    "ClientError",
    "ValidationError",
    "AuthError",
    "PermissionDenied",
    "ConflictOrServerError",
]
