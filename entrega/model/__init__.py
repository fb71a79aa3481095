from entrega.model.base import BaseModel
from entrega.model.tenant import Tenant, TenantStatus
from entrega.model.account import Account, AccountRole
from entrega.model.project import Project, ProjectPhase, ProjectStatus
from entrega.model.owner import Owner
from entrega.model.unit import Unit, UnitStatus
from entrega.model.document import Document, DocumentCategory, DocumentVersion, DocumentVisibility
from entrega.model.warranty import UnitWarranty, WarrantyCategory, WarrantyStatus
from entrega.model.lead import Lead, LeadStatus
from entrega.model.billing import BillingRecord, BillingStatus
from entrega.model.audit_log import AuditLog
from entrega.model.job import Job, JobStatus, JobType

__all__ = [
    "BaseModel",
    "Tenant",
    "TenantStatus",
    "Account",
    "AccountRole",
    "Project",
    "ProjectPhase",
    "ProjectStatus",
    "Owner",
    "Unit",
    "UnitStatus",
    "Document",
    "DocumentCategory",
    "DocumentVersion",
    "DocumentVisibility",
    "UnitWarranty",
    "WarrantyCategory",
    "WarrantyStatus",
    "Lead",
    "LeadStatus",
    "BillingRecord",
    "BillingStatus",
    "AuditLog",
    "Job",
    "JobStatus",
    "JobType",
]
