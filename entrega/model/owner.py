import uuid

from sqlmodel import Field

from entrega.model.base import BaseModel


class Owner(BaseModel, table=True):
    """Modelo Owner - proprietário (cliente final) de uma ou mais unidades."""

    __tablename__ = "owner"

    # Construtora que cadastrou o proprietário
    tenant_id: uuid.UUID | None = Field(default=None, foreign_key="tenant.id", index=True, nullable=True)
    # Preenchido quando o proprietário cria sua conta (role OWNER)
    account_id: uuid.UUID | None = Field(default=None, foreign_key="account.id", index=True, nullable=True)

    name: str = Field(nullable=False, index=True)
    email: str = Field(nullable=False, index=True)
    phone: str | None = Field(default=None, nullable=True)
    document: str | None = Field(default=None, nullable=True)  # CPF/CNPJ
