from dataclasses import dataclass
import logging
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from leadcms.auth.clerk import verify_clerk_token
from leadcms.db.deps import get_session
from leadcms.db.repositories.orgs import OrgsRepository, UsersRepository


bearer_scheme = HTTPBearer(auto_error=False)
logger = logging.getLogger("auth.deps")


@dataclass(frozen=True)
class AuthContext:
    """The authenticated principal, passed explicitly into services."""

    user_id: int
    org_id: int
    clerk_user_id: str = ""


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> AuthContext:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")

    claims = verify_clerk_token(credentials.credentials)
    clerk_user_id = claims.get("sub")
    if not clerk_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token claims")
    external_org_id = (
        claims.get("org_id")
        or claims.get("organization_id")
        or (claims.get("orgs") or [{}])[0].get("id")
    )
    if not external_org_id:
        logger.warning(
            "Missing organization in token",
            extra={"sub": clerk_user_id, "claims_keys": list(claims.keys())},
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Missing organization context in token",
        )

    orgs_repo = OrgsRepository(session)
    org = orgs_repo.get_by_external_id(external_org_id)
    if not org:
        logger.info("Creating org from Clerk external_id", extra={"external_org_id": external_org_id})
        org = orgs_repo.create(name=f"Clerk org {external_org_id}", external_id=external_org_id)

    users_repo = UsersRepository(session)
    user = users_repo.get_by_clerk_id(org_id=org.id, clerk_user_id=clerk_user_id)
    if not user:
        logger.info("Creating user from Clerk subject", extra={"sub": clerk_user_id, "org_id": org.id})
        user = users_repo.create(org_id=org.id, clerk_user_id=clerk_user_id, email=claims.get("email"))

    logger.debug("AuthContext built", extra={"sub": clerk_user_id, "org_id": org.id, "user_id": user.id})
    return AuthContext(user_id=user.id, org_id=org.id, clerk_user_id=clerk_user_id)
