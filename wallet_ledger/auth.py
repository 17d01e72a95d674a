"""Request-scoped owner identity."""

from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from wallet_ledger.security import decode_access_token
from wallet_ledger.utils.exceptions import raise_unauthorized

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> UUID:
    """Resolve the owner id from the bearer token's ``sub`` claim.

    Every query downstream is scoped to this id.
    """
    if credentials is None:
        raise_unauthorized("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise_unauthorized("Could not validate credentials")

    user_id_str = payload.get("sub")
    if not user_id_str:
        raise_unauthorized("Token missing subject")

    try:
        return UUID(user_id_str)
    except ValueError as exc:
        raise_unauthorized("Invalid user ID format in token", cause=exc)
