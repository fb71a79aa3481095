from fastapi import APIRouter, Depends

from entrega.api.audit import router as audit_router
from entrega.api.auth import AccountResponse, router as auth_router
from entrega.api.dashboard import router as dashboard_router
from entrega.api.document import router as document_router
from entrega.api.lead import router as lead_router
from entrega.api.owner import router as owner_router
from entrega.api.project import router as project_router
from entrega.api.tenant import router as tenant_router
from entrega.api.unit import router as unit_router
from entrega.api.warranty import router as warranty_router
from entrega.auth.dependencies import get_current_account
from entrega.model.account import Account

router = APIRouter()  # Sem tag padrão - cada módulo define a sua
router.include_router(auth_router)
router.include_router(tenant_router)
router.include_router(project_router)
# warranty antes de unit: /unit/{unit_id}/warranties
router.include_router(warranty_router)
router.include_router(unit_router)
router.include_router(owner_router)
router.include_router(document_router)
router.include_router(lead_router)
router.include_router(audit_router)
router.include_router(dashboard_router)


@router.get("/health", tags=["Health"])
def health():
    return {"status": "ok"}


@router.get("/me", response_model=AccountResponse, tags=["Auth"])
def me(account: Account = Depends(get_current_account)):
    return account
