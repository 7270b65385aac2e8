"""
Core exception classes for AWS Fleet Ledger.
"""


class FleetLedgerError(Exception):
    """Base exception for all AWS Fleet Ledger errors."""
    
    def __init__(self, message: str, details: str = None):
        super().__init__(message)
        self.message = message
        self.details = details


class AuthenticationError(FleetLedgerError):
    """Raised when account credentials cannot be loaded or used."""
    pass


class ConfigurationError(FleetLedgerError):
    """Raised when configuration is invalid or missing."""
    pass


class FetchError(FleetLedgerError):
    """Raised when an AWS describe/list call fails during a cycle."""
    pass


class PricingError(FleetLedgerError):
    """Raised when the pricing data file cannot be loaded."""
    pass


class StateError(FleetLedgerError):
    """Raised when snapshot state transitions are invalid."""
    pass


class PersistenceError(FleetLedgerError):
    """Raised when the history store cannot be read or written."""
    pass
