from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlmodel import Session

from ..db import engine
from ..schemas import PublicVisitorRegistration
from ..visitors import EXPIRED, INVALID, NOT_APPROVED, register_public_visitor, verify_visitor_token


router = APIRouter(prefix="/api/public", tags=["public"])


@router.post("/visitor-registration", status_code=201)
def public_visitor_registration(payload: PublicVisitorRegistration):
    with Session(engine) as session:
        visitor = register_public_visitor(session, payload)
        return {
            "success": True,
            "message": "Visitor registration submitted for approval",
            "visitor": {"id": visitor.id, "full_name": visitor.full_name, "status": visitor.status},
        }


@router.get("/visitors/verify/{token}")
@router.post("/visitors/verify/{token}")
def verify_visitor(token: str):
    with Session(engine) as session:
        outcome, visitor = verify_visitor_token(session, token)

        if outcome == INVALID:
            return JSONResponse(
                status_code=404,
                content={"success": False, "message": "Invalid or expired QR code"},
            )
        if outcome == NOT_APPROVED:
            return JSONResponse(
                status_code=400,
                content={
                    "success": False,
                    "message": f"Visitor status is {visitor.status}, not approved",
                },
            )
        if outcome == EXPIRED:
            return JSONResponse(
                status_code=400,
                content={
                    "success": False,
                    "message": "This visit has expired",
                    "visitor": {
                        "id": visitor.id,
                        "full_name": visitor.full_name,
                        "visit_date": visitor.visit_date.isoformat(),
                        "status": "expired",
                    },
                },
            )
        return {
            "success": True,
            "message": "QR code verified successfully",
            "visitor": {
                "id": visitor.id,
                "full_name": visitor.full_name,
                "email": visitor.email,
                "phone": visitor.phone,
                "visit_date": visitor.visit_date.isoformat(),
                "visit_time": visitor.visit_time,
                "purpose": visitor.purpose,
                "resident_name": visitor.resident_name,
                "room_number": visitor.room_number,
                "number_of_visitors": visitor.number_of_visitors,
                "status": visitor.status,
            },
        }
