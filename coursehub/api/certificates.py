"""Certificate endpoints.

Requesting a certificate only enqueues the issuance task (202 Accepted);
``coursehub.worker`` records it.  GET /v1/me/certificates lists what has
been issued so far.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, status
from pydantic import BaseModel

from coursehub.api.dependencies import EngineDep, StoresDep, UserDep
from coursehub.api.errors import http_error
from coursehub.services.certificate_service import CertificateService
from coursehub.services.errors import CourseHubError

router = APIRouter(prefix="/v1", tags=["certificates"])


class CertificateRequestOut(BaseModel):
    task_id: str
    course_id: UUID
    status: str


class CertificateOut(BaseModel):
    course_id: UUID
    issued_at: int
    completed_at: int
    certificate_url: str | None


@router.post(
    "/courses/{course_id}/certificate",
    response_model=CertificateRequestOut,
    status_code=status.HTTP_202_ACCEPTED,
)
async def request_certificate(
    course_id: UUID, stores: StoresDep, engine: EngineDep, principal: UserDep
) -> CertificateRequestOut:
    try:
        task = await CertificateService(stores, engine).request_certificate(
            principal.user_id, course_id
        )
    except CourseHubError as exc:
        raise http_error(exc) from None
    return CertificateRequestOut(task_id=task.id, course_id=course_id, status="queued")


@router.get("/me/certificates", response_model=list[CertificateOut])
async def list_my_certificates(stores: StoresDep, principal: UserDep) -> list[CertificateOut]:
    certificates = await CertificateService(stores).list_certificates(principal.user_id)
    return [
        CertificateOut(
            course_id=c.course_id,
            issued_at=c.issued_at,
            completed_at=c.completed_at,
            certificate_url=c.certificate_url,
        )
        for c in certificates
    ]
