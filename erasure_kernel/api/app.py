"""
Erasure Kernel API — FastAPI endpoints.

Exposes the kernel via a REST API for:
- Self-service account erasure (and its dry-run preview)
- Audit trail reads for compliance and support tooling
- Administrative reset for ops and test environments

Credential checks happen upstream; requests arrive with a
`credentials_verified` verdict already attached.
"""

from datetime import datetime
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from erasure_kernel.config import ErasureSettings, configure_logging
from erasure_kernel.models.erasure import ErasureOptions
from erasure_kernel.models.outcome import ErasureStatus
from erasure_kernel.service import AccountErasureService

UNKNOWN = "unknown"


# --- Request Models ---

class EraseRequest(BaseModel):
    identity: str
    credentials_verified: bool = False
    account_created_at: Optional[datetime] = None
    skip_backups: bool = False


def client_origin(request: Request) -> str:
    """First x-forwarded-for hop, else x-real-ip, else unknown."""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    return request.headers.get("x-real-ip") or UNKNOWN


def client_user_agent(request: Request) -> str:
    return request.headers.get("user-agent") or UNKNOWN


# --- Application Factory ---

def create_app(
    service: Optional[AccountErasureService] = None,
    settings: Optional[ErasureSettings] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title="Erasure Kernel API",
        description="Gated, auditable account erasure",
        version="0.1.0",
    )

    if service is None:
        settings = settings or ErasureSettings()
        configure_logging(settings.log_level)
        service = AccountErasureService.from_settings(settings)

    svc = service
    app.state.erasure_service = svc

    def _run(req: EraseRequest, request: Request, dry_run: bool):
        if not req.identity.strip():
            raise HTTPException(400, "Identity is required")
        return svc.request_erasure(
            identity=req.identity,
            credentials_verified=req.credentials_verified,
            origin=client_origin(request),
            user_agent=client_user_agent(request),
            account_created_at=req.account_created_at,
            options=ErasureOptions(skip_backups=req.skip_backups, dry_run=dry_run),
        )

    def _blocked_response(outcome) -> JSONResponse:
        decision = outcome.decision
        return JSONResponse(
            status_code=429,
            content={
                "error": "deletion_blocked",
                "message": decision.reason or "Account deletion blocked for security reasons",
                "riskLevel": decision.risk_tier.value,
                "blockUntil": (
                    decision.blocked_until.isoformat() if decision.blocked_until else None
                ),
            },
        )

    # === ERASURE ===

    @app.post("/account/erase")
    def erase_account(req: EraseRequest, request: Request):
        """Permanently erase the caller's account."""
        outcome = _run(req, request, dry_run=False)

        if outcome.status == ErasureStatus.UNAUTHORIZED:
            raise HTTPException(401, "Credential verification required")
        if outcome.status == ErasureStatus.BLOCKED:
            return _blocked_response(outcome)

        result = outcome.result
        if outcome.status == ErasureStatus.FAILED:
            return JSONResponse(
                status_code=500,
                content={
                    "error": "deletion_failed",
                    "message": "Failed to complete account deletion",
                    "errors": result.errors,
                },
            )

        return {
            "message": "Account successfully deleted",
            "identity": outcome.identity,
            "deletedAt": result.audit_record.timestamp.isoformat(),
            "removedData": result.removed_data(),
            "auditId": result.audit_event_id,
        }

    @app.post("/account/erase/preview")
    def preview_erasure(req: EraseRequest, request: Request):
        """Dry run: what an erasure would remove. Changes nothing."""
        outcome = _run(req, request, dry_run=True)

        if outcome.status == ErasureStatus.UNAUTHORIZED:
            raise HTTPException(401, "Credential verification required")
        if outcome.status == ErasureStatus.BLOCKED:
            return _blocked_response(outcome)

        result = outcome.result
        return {
            "identity": outcome.identity,
            "dryRun": True,
            "success": result.success,
            "removedData": result.removed_data(),
            "errors": result.errors,
            "riskLevel": outcome.decision.risk_tier.value,
            "additionalVerificationRequired": outcome.decision.additional_verification_required,
        }

    # === ADMIN ===

    @app.get("/admin/audit")
    def audit_all():
        """Every audit event (administrative)."""
        return [e.model_dump(mode="json") for e in svc.audit_all()]

    @app.get("/admin/audit/verify")
    def verify_audit():
        """Verify the audit ledger's signature chain."""
        return {
            "integrity_valid": svc.audit.verify_integrity(),
            "total_events": svc.audit.count(),
        }

    @app.get("/admin/audit/{identity}")
    def audit_by_identity(identity: str):
        """All audit events for one identity."""
        return [e.model_dump(mode="json") for e in svc.audit_by_identity(identity)]

    @app.get("/admin/erasures/{identity}")
    def erasure_history(identity: str):
        """Recent erasure runs for one identity."""
        return [r.model_dump(mode="json") for r in svc.removal_history(identity)]

    @app.post("/admin/reset")
    def reset_state():
        """Clear every ledger and history (ops and test environments)."""
        svc.reset()
        return {"status": "reset"}

    return app


# Default application instance
app = create_app()
