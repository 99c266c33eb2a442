from __future__ import annotations

from fastapi import status
from fastapi.responses import JSONResponse

from app.economy.entitlements.errors import RoleNotPermittedError
from app.economy.entitlements.types import DenialReason, EntitlementDecision

DENIAL_MESSAGES: dict[DenialReason, str] = {
    DenialReason.SUBSCRIPTION_REQUIRED: "An active subscription plan is required for this action.",
    DenialReason.QUOTA_EXCEEDED: "The monthly limit of your subscription plan has been reached.",
    DenialReason.INSUFFICIENT_TOKENS: "Your token balance is too low for this action.",
}

DENIAL_STATUS_CODES: dict[DenialReason, int] = {
    DenialReason.SUBSCRIPTION_REQUIRED: status.HTTP_403_FORBIDDEN,
    DenialReason.QUOTA_EXCEEDED: status.HTTP_402_PAYMENT_REQUIRED,
    DenialReason.INSUFFICIENT_TOKENS: status.HTTP_402_PAYMENT_REQUIRED,
}


def denial_response(decision: EntitlementDecision) -> JSONResponse:
    if decision.reason is None:
        raise ValueError("decision is not a denial")
    return JSONResponse(
        status_code=DENIAL_STATUS_CODES[decision.reason],
        content={
            "success": False,
            "code": decision.code,
            "reason": decision.reason.value,
            "action": decision.action,
            "message": DENIAL_MESSAGES[decision.reason],
            "details": decision.details,
        },
    )


def role_not_permitted_response(exc: RoleNotPermittedError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN,
        content={
            "success": False,
            "code": "E_ROLE_NOT_PERMITTED",
            "reason": "ROLE_NOT_PERMITTED",
            "action": exc.action,
            "message": "This account type cannot perform this action.",
            "details": {"role": exc.role},
        },
    )


def entitlement_unavailable_response() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "success": False,
            "code": "E_ENTITLEMENT_UNAVAILABLE",
            "message": "Entitlements could not be verified, please retry.",
            "retryable": True,
        },
    )


def persistence_unavailable_response() -> JSONResponse:
    # The write may or may not have committed; callers must not blindly retry.
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "success": False,
            "code": "E_PERSISTENCE_UNAVAILABLE",
            "message": "The request was admitted but could not be saved.",
            "retryable": False,
        },
    )
