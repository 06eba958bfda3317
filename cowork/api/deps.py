from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError

from ..core import errors
from ..core.pricing import Eligibility
from ..core.security import decode_access_token


# tokens come from the external auth service; this app never issues them to clients
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token")

_ERROR_STATUSES: dict[type[errors.BookingEngineError], int] = {
    errors.InvalidInterval: status.HTTP_400_BAD_REQUEST,
    errors.DurationOutOfRange: status.HTTP_400_BAD_REQUEST,
    errors.InvalidRefund: status.HTTP_400_BAD_REQUEST,
    errors.CapacityExceeded: status.HTTP_400_BAD_REQUEST,
    errors.BookingNotFound: status.HTTP_404_NOT_FOUND,
    errors.WorkspaceNotFound: status.HTTP_404_NOT_FOUND,
    errors.NoActiveCycle: status.HTTP_404_NOT_FOUND,
    errors.SlotUnavailable: status.HTTP_409_CONFLICT,
    errors.InvalidTransition: status.HTTP_409_CONFLICT,
    errors.LedgerInconsistency: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@dataclass(frozen=True)
class Requester:
    user_id: int
    is_nft_holder: bool = False
    is_member: bool = False
    role: str = "member"

    @property
    def eligibility(self) -> Eligibility:
        return Eligibility(is_nft_holder=self.is_nft_holder, is_member=self.is_member)


def get_requester(token: Annotated[str, Depends(oauth2_scheme)]) -> Requester:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
    )
    try:
        payload = decode_access_token(token)
    except JWTError as exc:
        raise credentials_exception from exc
    user_id = payload.get("sub")
    if user_id is None:
        raise credentials_exception
    try:
        user_id = int(user_id)
    except (TypeError, ValueError) as exc:
        raise credentials_exception from exc
    return Requester(
        user_id=user_id,
        is_nft_holder=bool(payload.get("nft_holder", False)),
        is_member=bool(payload.get("member", False)),
        role=payload.get("role") or "member",
    )


def require_roles(*roles: str):
    def dependency(requester: Annotated[Requester, Depends(get_requester)]) -> Requester:
        if requester.role not in roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
        return requester

    return dependency


def http_error(exc: errors.BookingEngineError) -> HTTPException:
    for kind in type(exc).__mro__:
        if kind in _ERROR_STATUSES:
            code = _ERROR_STATUSES[kind]
            if code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
                return HTTPException(status_code=code, detail="Internal booking error")
            return HTTPException(status_code=code, detail=exc.message)
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message)
