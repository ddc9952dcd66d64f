"""FastAPI routes for the Checkout context: sessions, steps and payment."""

from collections.abc import Callable

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException

from checkout.api.schemas import (
    ConfigureGatewayRequest,
    GatewayConfigResponse,
    PaymentResponse,
    SessionResponse,
    StartCheckoutRequest,
    StepResponse,
    UpdateAddressRequest,
)
from checkout.config import CheckoutSettings, get_settings
from checkout.session import CheckoutServices, CheckoutSession
from payments.gateway import get_script_host
from payments.gateway.fake_adapter import FakeScriptHost
from shared.exceptions import AuthenticationError, BackendError, ValidationError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/checkout", tags=["checkout"])

ServiceFactory = Callable[[str | None], CheckoutServices]

_sessions: dict[str, CheckoutSession] = {}
_service_factory: ServiceFactory | None = None


def set_service_factory(factory: ServiceFactory | None) -> None:
    """Override how backend collaborators are built per buyer token (useful for tests)."""
    global _service_factory
    _service_factory = factory


def _build_services(token: str | None, settings: CheckoutSettings) -> CheckoutServices:
    if _service_factory is not None:
        return _service_factory(token)
    return CheckoutServices.over_http(settings, token=token)


async def close_sessions() -> None:
    """Drop every open session and release its backend client."""
    while _sessions:
        _, session = _sessions.popitem()
        await session.services.aclose()


async def _release(session: CheckoutSession, reason: str) -> None:
    if _sessions.pop(session.id, None) is None:
        return
    await session.services.aclose()
    logger.info("Checkout session released", session_id=session.id, buyer_id=session.buyer_id, reason=reason)


async def _prune_idle_sessions(settings: CheckoutSettings) -> None:
    # A session paying right now is never idle, however long the widget stays open.
    stale = [
        session
        for session in _sessions.values()
        if not session.payment.processing_payment and session.idle_for() > settings.session_idle_timeout
    ]
    for session in stale:
        await _release(session, "idle")


def _bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token.strip()


def _get_session(session_id: str) -> CheckoutSession:
    session = _sessions.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Checkout session {session_id} not found")
    session.touch()
    return session


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------
@router.post("/sessions", status_code=201, response_model=SessionResponse)
async def start_checkout(
    body: StartCheckoutRequest,
    authorization: str | None = Header(default=None),
    settings: CheckoutSettings = Depends(get_settings),
) -> SessionResponse:
    """Open a checkout for the buyer's current cart."""
    await _prune_idle_sessions(settings)
    services = _build_services(_bearer_token(authorization), settings)
    try:
        session = await CheckoutSession.open(
            body.buyer_id,
            services,
            settings,
            full_name=body.full_name,
            email=body.email,
        )
    except (BackendError, ValidationError) as exc:
        await services.aclose()
        if isinstance(exc, AuthenticationError):
            status_code = 401
        elif isinstance(exc, ValidationError):
            status_code = 422
        else:
            status_code = 502
        raise HTTPException(status_code=status_code, detail=exc.user_message) from exc

    _sessions[session.id] = session
    return SessionResponse.from_session(session)


@router.get("/sessions/{session_id}", response_model=SessionResponse)
async def get_checkout(session_id: str) -> SessionResponse:
    return SessionResponse.from_session(_get_session(session_id))


@router.delete("/sessions/{session_id}", status_code=204)
async def end_checkout(session_id: str) -> None:
    """Abandon a checkout and release its backend client."""
    session = _get_session(session_id)
    if session.payment.processing_payment:
        raise HTTPException(status_code=409, detail="A payment is already in progress")
    await _release(session, "ended")


@router.patch("/sessions/{session_id}/address", response_model=SessionResponse)
async def update_address(session_id: str, body: UpdateAddressRequest) -> SessionResponse:
    """Edit shipping address fields while on the address step."""
    session = _get_session(session_id)
    if session.form.frozen:
        raise HTTPException(status_code=409, detail="The shipping address cannot be changed during payment")

    try:
        session.edit_address(**body.model_dump(exclude_unset=True))
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.messages) from exc
    return SessionResponse.from_session(session)


@router.post("/sessions/{session_id}/advance", response_model=StepResponse)
async def advance_step(session_id: str) -> StepResponse:
    """Move from the address step to the payment step."""
    return StepResponse.from_transition(_get_session(session_id).advance())


@router.post("/sessions/{session_id}/back", response_model=StepResponse)
async def back_step(session_id: str) -> StepResponse:
    """Return to the address step."""
    return StepResponse.from_transition(_get_session(session_id).back())


@router.post("/sessions/{session_id}/pay", response_model=PaymentResponse)
async def pay(session_id: str) -> PaymentResponse:
    """Run one payment attempt for the session's current total."""
    session = _get_session(session_id)
    result = await session.pay()
    logger.info(
        "Payment attempt finished",
        session_id=session.id,
        buyer_id=session.buyer_id,
        status=result.status.value,
    )
    if session.finished:
        await _release(session, result.status.value)
    return PaymentResponse.from_result(result)


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------
@router.post("/gateway/configure", response_model=GatewayConfigResponse)
async def configure_gateway(
    body: ConfigureGatewayRequest,
    settings: CheckoutSettings = Depends(get_settings),
) -> GatewayConfigResponse:
    """Configure the fake gateway's behavior (non-production only).

    This endpoint is only available when CHECKOUT_ENVIRONMENT is not
    'production'. It lets manual API testing choose whether the widget
    succeeds, fails, is dismissed or never answers, and whether the script loads at all.
    """
    if settings.is_production:
        raise HTTPException(status_code=403, detail="Gateway configuration not available in production")

    host = get_script_host()
    if not isinstance(host, FakeScriptHost):
        raise HTTPException(status_code=400, detail="Gateway configuration only available for FakeScriptHost")

    host.configure(
        outcome=body.outcome,
        failure_reason=body.failure_reason,
        repeat_callbacks=body.repeat_callbacks,
        should_load=body.should_load,
        load_delay=body.load_delay,
    )
    return GatewayConfigResponse(
        host=type(host).__name__,
        outcome=host.behavior.outcome,
        failure_reason=host.behavior.failure_reason,
        repeat_callbacks=host.behavior.repeat_callbacks,
        should_load=host.should_load,
        load_delay=host.load_delay,
    )
