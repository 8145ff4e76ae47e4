# app/api/deps.py
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from app.core.config import settings
from app.core.pubsub import TopicRegistry
from app.db.session import get_db  # noqa: F401  (re-exported for endpoints)
from app.schemas.token import TokenPayload
from app.services.notifications import TicketNotifier, ticket_notifier
from app.services.payment.provider_factory import get_payment_provider_factory
from app.services.payment.provider_interface import PaymentProviderInterface


# `tokenUrl` is only used by the OpenAPI docs; staff log in on the admin app.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")


def get_current_user(token: str = Depends(oauth2_scheme)) -> TokenPayload:
    """Staff user from the bearer token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=["HS256"])
        token_data = TokenPayload(**payload)
    except (JWTError, ValueError):
        # Catches any error from jose or Pydantic validation
        raise credentials_exception

    return token_data


def get_payment_provider_optional() -> Optional[PaymentProviderInterface]:
    """The configured provider, or None when payments are not set up."""
    factory = get_payment_provider_factory()
    if not factory.is_provider_available("stripe"):
        return None
    return factory.get_provider("stripe")


def get_payment_provider(
    provider: Optional[PaymentProviderInterface] = Depends(get_payment_provider_optional),
) -> PaymentProviderInterface:
    if provider is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Payment provider is not configured",
        )
    return provider


def get_notifier() -> TicketNotifier:
    return ticket_notifier


def get_topics(request: Request) -> TopicRegistry:
    """The process-wide topic registry created in the app lifespan."""
    return request.app.state.topics
