import logging

from fastapi import HTTPException
from sqlmodel import Session, select

from entrega.model.base import utc_now
from entrega.model.lead import Lead, LeadStatus
from entrega.model.tenant import Tenant, TenantStatus

logger = logging.getLogger(__name__)


def approve_lead(session: Session, lead: Lead) -> Tenant:
    """
    Converte o lead em construtora ACTIVE e marca o lead como APPROVED
    na mesma transação.
    """
    if lead.status == LeadStatus.APPROVED:
        raise HTTPException(status_code=409, detail="Lead já aprovado")
    if session.exec(select(Tenant).where(Tenant.cnpj == lead.cnpj)).first():
        raise HTTPException(status_code=409, detail="Já existe construtora com este CNPJ")

    tenant = Tenant(
        name=lead.business_name,
        cnpj=lead.cnpj,
        admin_email=lead.email,
        phone=lead.whatsapp,
        plan=lead.plan,
        status=TenantStatus.ACTIVE,
        subscription_status="TRIAL",
    )
    lead.status = LeadStatus.APPROVED
    lead.updated_at = utc_now()
    session.add(tenant)
    session.add(lead)
    session.commit()
    session.refresh(tenant)
    logger.info(f"Lead aprovado: lead_id={lead.id}, tenant_id={tenant.id}")
    return tenant
