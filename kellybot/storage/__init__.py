"""Storage layer for kellybot - whole-record file persistence.

This package provides:
- Atomic JSON/YAML record files (tempfile -> rename)
- The bankroll ledger (data/bankroll.yaml)
- The bet store (data/bets.json)
- Bookmaker and sport aliases (data/aliases.yaml)
- A data directory lock (data/.lock) shared by every writer

Reads degrade to defaults when a file is missing or corrupt; writes are
all-or-nothing and raise PersistenceError on failure.
"""

# Record files
from .files import RecordFile

# Bankroll
from .ledger import BankrollLedger, BankrollRecord, DEFAULT_BANKROLL

# Bets
from .bets import BetRecord, BetStatus, BetStore

# Data directory lock
from .locking import DataLock

# Aliases
from .aliases import AliasBook, AliasKind, load_aliases, save_aliases

from .models import RecordModel, to_decimal

__all__ = [
    "RecordFile",
    "DataLock",
    "BankrollLedger",
    "BankrollRecord",
    "DEFAULT_BANKROLL",
    "BetRecord",
    "BetStatus",
    "BetStore",
    "AliasBook",
    "AliasKind",
    "load_aliases",
    "save_aliases",
    "RecordModel",
    "to_decimal",
]
