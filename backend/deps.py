from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from auth import decode_access_token
from exceptions import AuthError
from result import ErrorKind, Result
from services import Services


bearer_scheme = HTTPBearer(auto_error=False)

_STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INVALID: status.HTTP_400_BAD_REQUEST,
    ErrorKind.UNAUTHORIZED: status.HTTP_403_FORBIDDEN,
    ErrorKind.REMOTE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.LOCAL_CACHE_MISS: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def get_services(request: Request) -> Services:
    return request.app.state.services


async def get_current_user_id(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str:
    """Reads the Bearer token and returns the user id it was issued for."""

    if creds is None or not creds.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing token")
    try:
        return decode_access_token(creds.credentials)
    except AuthError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=e.message)


def unwrap(result: Result):
    """Return the payload of a success, or raise the matching HTTP error."""
    if result.is_success:
        return result.data
    raise HTTPException(status_code=_STATUS_BY_KIND.get(result.kind, 500), detail=result.message)
