"""
Transaction History Module

Append-only log of every transaction the ledger produced, including the
structural Spacer and Section markers used to group the rendered output.
"""

from typing import Iterator, List, Optional

from .config import LedgerConfig, get_config
from .logging_config import get_logger, log_action
from .transactions import Transaction, Failed, Spacer, Section


def _account_of(transaction: Transaction) -> Optional[str]:
    """Account a transaction is booked against (the paying side for two-leg variants)"""
    for field in ("account", "from_account", "payer_account"):
        number = getattr(transaction, field, None)
        if number:
            return number
    return None


class TransactionHistory:
    """
    Ordered, append-only sequence of transactions

    Entries are rendered on demand with ``render``; every append is also
    echoed as a structured log record unless disabled in configuration.
    """

    def __init__(self, config: Optional[LedgerConfig] = None):
        self._entries: List[Transaction] = []
        self._config = config or get_config()
        self.logger = get_logger("keyledger.history")

    def append(self, transaction: Transaction) -> Transaction:
        """Append a transaction and return it"""
        if not isinstance(transaction, Transaction):
            raise TypeError(f"Expected a Transaction, got {type(transaction).__name__}")

        self._entries.append(transaction)

        if self._config.echo_history and not transaction.is_marker:
            failed = isinstance(transaction, Failed)
            log_action(
                self.logger, "warning" if failed else "info", transaction.describe(),
                client=getattr(transaction, "client", None) or getattr(transaction, "owner", None),
                action=type(transaction).__name__.lower(),
                account=_account_of(transaction),
                error_kind=transaction.kind.value if failed else None,
                extra={"sequence": len(self._entries) - 1}
            )

        return transaction

    def add_spacer(self) -> None:
        self.append(Spacer())

    def add_section(self, header: str) -> None:
        self.append(Section(header))

    def last(self) -> Optional[Transaction]:
        """Most recent non-marker entry"""
        for transaction in reversed(self._entries):
            if not transaction.is_marker:
                return transaction
        return None

    def failures(self) -> List[Failed]:
        return [t for t in self._entries if isinstance(t, Failed)]

    def entries(self) -> List[Transaction]:
        """Copy of all entries in append order"""
        return list(self._entries)

    def render(self) -> str:
        """Render every entry, one description per line"""
        return "\n".join(transaction.describe() for transaction in self._entries)

    def __iter__(self) -> Iterator[Transaction]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, index: int) -> Transaction:
        return self._entries[index]
