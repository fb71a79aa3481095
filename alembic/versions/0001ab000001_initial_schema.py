"""initial schema

Revision ID: 0001ab000001
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001ab000001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _base_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.Uuid(), nullable=False, primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "tenant",
        *_base_columns(),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("cnpj", sa.String(), nullable=False),
        sa.Column("logo_url", sa.String(), nullable=True),
        sa.Column("primary_color", sa.String(), nullable=True),
        sa.Column("status", sa.String(length=9), nullable=False),
        sa.Column("admin_email", sa.String(), nullable=True),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("plan", sa.String(), nullable=True),
        sa.Column("subscription_status", sa.String(), nullable=True),
        sa.Column("last_payment_date", sa.Date(), nullable=True),
        sa.Column("timezone", sa.String(), nullable=False),
        sa.Column("locale", sa.String(), nullable=False),
    )
    op.create_index(op.f("ix_tenant_name"), "tenant", ["name"], unique=False)
    op.create_index(op.f("ix_tenant_cnpj"), "tenant", ["cnpj"], unique=True)
    op.create_index(op.f("ix_tenant_status"), "tenant", ["status"], unique=False)
    op.create_index(op.f("ix_tenant_admin_email"), "tenant", ["admin_email"], unique=False)

    op.create_table(
        "account",
        *_base_columns(),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("password_hash", sa.String(), nullable=False),
        sa.Column("role", sa.String(length=6), nullable=False),
        sa.Column("tenant_id", sa.Uuid(), nullable=True),
        sa.Column("avatar_url", sa.String(), nullable=True),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenant.id"]),
        sa.UniqueConstraint("email", name="uq_account_email"),
    )
    op.create_index(op.f("ix_account_email"), "account", ["email"], unique=False)
    op.create_index(op.f("ix_account_role"), "account", ["role"], unique=False)
    op.create_index(op.f("ix_account_tenant_id"), "account", ["tenant_id"], unique=False)

    op.create_table(
        "owner",
        *_base_columns(),
        sa.Column("tenant_id", sa.Uuid(), nullable=True),
        sa.Column("account_id", sa.Uuid(), nullable=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("document", sa.String(), nullable=True),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenant.id"]),
        sa.ForeignKeyConstraint(["account_id"], ["account.id"]),
    )
    op.create_index(op.f("ix_owner_tenant_id"), "owner", ["tenant_id"], unique=False)
    op.create_index(op.f("ix_owner_account_id"), "owner", ["account_id"], unique=False)
    op.create_index(op.f("ix_owner_name"), "owner", ["name"], unique=False)
    op.create_index(op.f("ix_owner_email"), "owner", ["email"], unique=False)

    op.create_table(
        "project",
        *_base_columns(),
        sa.Column("tenant_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("city", sa.String(), nullable=False),
        sa.Column("state", sa.String(), nullable=False),
        sa.Column("manager", sa.String(), nullable=False),
        sa.Column("address", sa.String(), nullable=True),
        sa.Column("delivery_date", sa.Date(), nullable=True),
        sa.Column("actual_delivery_date", sa.Date(), nullable=True),
        sa.Column("status", sa.String(length=12), nullable=False),
        sa.Column("phase", sa.String(length=13), nullable=False),
        sa.Column("open_issues", sa.Integer(), nullable=False),
        sa.Column("completion_percentage", sa.Integer(), nullable=False),
        sa.Column("image_url", sa.String(), nullable=True),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenant.id"]),
        sa.CheckConstraint(
            "completion_percentage >= 0 AND completion_percentage <= 100",
            name="ck_project_completion_percentage",
        ),
    )
    op.create_index(op.f("ix_project_tenant_id"), "project", ["tenant_id"], unique=False)
    op.create_index(op.f("ix_project_name"), "project", ["name"], unique=False)
    op.create_index(op.f("ix_project_status"), "project", ["status"], unique=False)

    op.create_table(
        "unit",
        *_base_columns(),
        sa.Column("project_id", sa.Uuid(), nullable=False),
        sa.Column("owner_id", sa.Uuid(), nullable=True),
        sa.Column("block", sa.String(), nullable=False),
        sa.Column("number", sa.String(), nullable=False),
        sa.Column("floor", sa.String(), nullable=False),
        sa.Column("bedrooms", sa.Integer(), nullable=False),
        sa.Column("bathrooms", sa.Integer(), nullable=False),
        sa.Column("typology", sa.String(), nullable=False),
        sa.Column("area", sa.Float(), nullable=False),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("status", sa.String(length=9), nullable=False),
        sa.ForeignKeyConstraint(["project_id"], ["project.id"]),
        sa.ForeignKeyConstraint(["owner_id"], ["owner.id"]),
        sa.UniqueConstraint("project_id", "block", "number", name="uq_unit_project_block_number"),
    )
    op.create_index(op.f("ix_unit_project_id"), "unit", ["project_id"], unique=False)
    op.create_index(op.f("ix_unit_owner_id"), "unit", ["owner_id"], unique=False)
    op.create_index(op.f("ix_unit_status"), "unit", ["status"], unique=False)

    op.create_table(
        "document",
        *_base_columns(),
        sa.Column("project_id", sa.Uuid(), nullable=False),
        sa.Column("unit_id", sa.Uuid(), nullable=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("category", sa.String(length=9), nullable=False),
        sa.Column("visibility", sa.String(length=8), nullable=False),
        sa.Column("current_version", sa.Integer(), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False),
        sa.Column("file_type", sa.String(), nullable=True),
        sa.Column("created_by", sa.Uuid(), nullable=True),
        sa.ForeignKeyConstraint(["project_id"], ["project.id"]),
        sa.ForeignKeyConstraint(["unit_id"], ["unit.id"]),
        sa.ForeignKeyConstraint(["created_by"], ["account.id"]),
    )
    op.create_index(op.f("ix_document_project_id"), "document", ["project_id"], unique=False)
    op.create_index(op.f("ix_document_unit_id"), "document", ["unit_id"], unique=False)
    op.create_index(op.f("ix_document_category"), "document", ["category"], unique=False)
    op.create_index(op.f("ix_document_visibility"), "document", ["visibility"], unique=False)

    op.create_table(
        "document_version",
        *_base_columns(),
        sa.Column("document_id", sa.Uuid(), nullable=False),
        sa.Column("version_number", sa.Integer(), nullable=False),
        sa.Column("file_path", sa.String(), nullable=False),
        sa.Column("file_name", sa.String(), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False),
        sa.Column("file_type", sa.String(), nullable=False),
        sa.Column("created_by", sa.Uuid(), nullable=True),
        sa.ForeignKeyConstraint(["document_id"], ["document.id"]),
        sa.ForeignKeyConstraint(["created_by"], ["account.id"]),
        sa.UniqueConstraint("document_id", "version_number", name="uq_document_version_number"),
    )
    op.create_index(op.f("ix_document_version_document_id"), "document_version", ["document_id"], unique=False)
    op.create_index(op.f("ix_document_version_file_path"), "document_version", ["file_path"], unique=True)

    op.create_table(
        "warranty_category",
        *_base_columns(),
        sa.Column("tenant_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("term_months", sa.Integer(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenant.id"]),
        sa.UniqueConstraint("tenant_id", "name", name="uq_warranty_category_tenant_name"),
        sa.CheckConstraint("term_months > 0", name="ck_warranty_category_term_positive"),
    )
    op.create_index(op.f("ix_warranty_category_tenant_id"), "warranty_category", ["tenant_id"], unique=False)

    op.create_table(
        "unit_warranty",
        *_base_columns(),
        sa.Column("unit_id", sa.Uuid(), nullable=False),
        sa.Column("category_id", sa.Uuid(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("expiration_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=8), nullable=False),
        sa.Column("notes", sa.String(), nullable=True),
        sa.ForeignKeyConstraint(["unit_id"], ["unit.id"]),
        sa.ForeignKeyConstraint(["category_id"], ["warranty_category.id"]),
        sa.UniqueConstraint("unit_id", "category_id", name="uq_unit_warranty_unit_category"),
        sa.CheckConstraint("expiration_date >= start_date", name="ck_unit_warranty_expiration_after_start"),
    )
    op.create_index(op.f("ix_unit_warranty_unit_id"), "unit_warranty", ["unit_id"], unique=False)
    op.create_index(op.f("ix_unit_warranty_category_id"), "unit_warranty", ["category_id"], unique=False)
    op.create_index(op.f("ix_unit_warranty_expiration_date"), "unit_warranty", ["expiration_date"], unique=False)

    op.create_table(
        "lead",
        *_base_columns(),
        sa.Column("company_type", sa.String(), nullable=False),
        sa.Column("business_name", sa.String(), nullable=False),
        sa.Column("cnpj", sa.String(), nullable=False),
        sa.Column("manager_name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("whatsapp", sa.String(), nullable=False),
        sa.Column("location", sa.String(), nullable=False),
        sa.Column("units_per_month", sa.String(), nullable=False),
        sa.Column("plan", sa.String(), nullable=False),
        sa.Column("status", sa.String(length=9), nullable=False),
    )
    op.create_index(op.f("ix_lead_business_name"), "lead", ["business_name"], unique=False)
    op.create_index(op.f("ix_lead_cnpj"), "lead", ["cnpj"], unique=False)
    op.create_index(op.f("ix_lead_email"), "lead", ["email"], unique=False)
    op.create_index(op.f("ix_lead_status"), "lead", ["status"], unique=False)

    op.create_table(
        "billing_history",
        *_base_columns(),
        sa.Column("tenant_id", sa.Uuid(), nullable=False),
        sa.Column("invoice_number", sa.String(), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("status", sa.String(length=7), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("pdf_url", sa.String(), nullable=True),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenant.id"]),
    )
    op.create_index(op.f("ix_billing_history_tenant_id"), "billing_history", ["tenant_id"], unique=False)
    op.create_index(op.f("ix_billing_history_invoice_number"), "billing_history", ["invoice_number"], unique=True)
    op.create_index(op.f("ix_billing_history_due_date"), "billing_history", ["due_date"], unique=False)

    op.create_table(
        "audit_log",
        *_base_columns(),
        sa.Column("tenant_id", sa.Uuid(), nullable=True),
        sa.Column("actor_account_id", sa.Uuid(), nullable=True),
        sa.Column("actor_name", sa.String(), nullable=False),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("entity_type", sa.String(), nullable=False),
        sa.Column("entity_id", sa.String(), nullable=True),
        sa.Column("details", sa.String(), nullable=True),
        sa.Column("data", sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenant.id"]),
        sa.ForeignKeyConstraint(["actor_account_id"], ["account.id"]),
    )
    op.create_index(op.f("ix_audit_log_tenant_id"), "audit_log", ["tenant_id"], unique=False)
    op.create_index(op.f("ix_audit_log_actor_account_id"), "audit_log", ["actor_account_id"], unique=False)
    op.create_index(op.f("ix_audit_log_action"), "audit_log", ["action"], unique=False)
    op.create_index(op.f("ix_audit_log_entity_type"), "audit_log", ["entity_type"], unique=False)
    op.create_index(op.f("ix_audit_log_entity_id"), "audit_log", ["entity_id"], unique=False)

    op.create_table(
        "job",
        *_base_columns(),
        sa.Column("tenant_id", sa.Uuid(), nullable=True),
        sa.Column("job_type", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=9), nullable=False),
        sa.Column("input_data", sa.JSON(), nullable=True),
        sa.Column("result_data", sa.JSON(), nullable=True),
        sa.Column("error_message", sa.String(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenant.id"]),
    )
    op.create_index(op.f("ix_job_tenant_id"), "job", ["tenant_id"], unique=False)
    op.create_index(op.f("ix_job_job_type"), "job", ["job_type"], unique=False)
    op.create_index(op.f("ix_job_status"), "job", ["status"], unique=False)


def downgrade() -> None:
    # Ordem inversa das FKs; drop_table remove os índices junto
    for table in (
        "job",
        "audit_log",
        "billing_history",
        "lead",
        "unit_warranty",
        "warranty_category",
        "document_version",
        "document",
        "unit",
        "project",
        "owner",
        "account",
        "tenant",
    ):
        op.drop_table(table)
