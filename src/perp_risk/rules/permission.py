from src.perp_common.errors import AccountNotFoundError, PermissionDeniedError
from src.perp_market.domain.collaborators import AccountRegistryProtocol


def check_account_exists(accounts: AccountRegistryProtocol, account_id: int) -> None:
    if not accounts.exists(account_id):
        raise AccountNotFoundError(account_id)


def check_permission(
    accounts: AccountRegistryProtocol, account_id: int, capability: str, signer: str
) -> None:
    """Raise PermissionDeniedError unless signer holds capability on the account."""
    if not accounts.has_permission(account_id, capability, signer):
        raise PermissionDeniedError(account_id, capability, signer)
