"""
Permission Model Module

Capability levels, access keys and the key verification check. A key grants
its level on exactly one account: verification binds the key and the target
account number together.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .accounts import Account


class CapabilityLevel(Enum):
    """Permission tier granted by an access key"""
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    FULL = "full"
    ADMIN = "admin"
    VIEW = "view"

    @property
    def is_super(self) -> bool:
        """FULL and ADMIN satisfy every requirement"""
        return self in (CapabilityLevel.FULL, CapabilityLevel.ADMIN)

    def authorizes(self, required: 'CapabilityLevel') -> bool:
        """
        Check this level against a required level.

        Not an ordering: FULL and ADMIN on either side always succeed, the
        remaining levels only match themselves.
        """
        if self.is_super or required.is_super:
            return True
        return self is required

    def role_label(self, primary: bool = False) -> str:
        """Owner label used in account membership entries"""
        if self.is_super:
            return "primary-owner" if primary else "joint-owner"
        return f"{self.value}-only"


@dataclass(frozen=True, eq=False)
class AccessKey:
    """Secret/level pair; equal keys share a secret regardless of level"""
    secret: str
    level: CapabilityLevel = CapabilityLevel.FULL

    def __eq__(self, other):
        if not isinstance(other, AccessKey):
            return NotImplemented
        return self.secret == other.secret

    def __hash__(self):
        return hash(self.secret)

    def __repr__(self):
        return f"AccessKey(level={self.level.value})"


def key_authorizes(
    key: Optional[AccessKey],
    account: 'Account',
    target_account_number: str,
    required: CapabilityLevel
) -> bool:
    """
    Check that a key grants a capability on an account
    
    Args:
        key: Key presented by the caller
        account: Account holding the registered keys
        target_account_number: Account the request names
        required: Capability the operation needs
        
    Returns:
        True only when the account is the named target, the key secret is
        registered on it, and the registered level authorizes the requirement
    """
    if account.account_number != target_account_number:
        return False
    if key is None:
        return False
    stored = account.access_keys.get(key.secret)
    if stored is None:
        return False
    return stored.level.authorizes(required)
