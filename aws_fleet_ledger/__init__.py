"""
AWS Fleet Ledger - Reserved instance utilisation and inventory across AWS accounts.

Periodically collects instances, reservations and related resources from every
configured account and region, matches running instances against reserved
capacity and prices the fleet.
"""

__version__ = "1.0.0"

from aws_fleet_ledger.core.exceptions import FleetLedgerError

__all__ = ["FleetLedgerError"]
