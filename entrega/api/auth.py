import logging
import os
import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, EmailStr, field_validator, model_validator
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from entrega.auth.dependencies import get_current_account
from entrega.auth.jwt import create_access_token, reset_token_matches, verify_password_reset_token
from entrega.auth.password import get_password_hash, verify_password
from entrega.db.session import get_session
from entrega.lib.ids import parse_uuid
from entrega.model.account import Account, AccountRole
from entrega.model.base import utc_now
from entrega.model.owner import Owner
from entrega.model.tenant import Tenant, TenantStatus
from entrega.services.audit_service import record
from entrega.services.password_reset import PASSWORD_RESET_JOB, create_password_reset_job
from entrega.worker import queue

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])

def _master_emails() -> set[str]:
    raw = os.getenv("MASTER_EMAILS", "")
    return {e.strip().lower() for e in raw.split(",") if e.strip()}


def normalize_email(v: str | None) -> str:
    # Roda antes do EmailStr, que valida o formato
    return (v or "").strip().lower()


class AccountResponse(BaseModel):
    id: uuid.UUID
    email: str
    name: str
    role: AccountRole
    tenant_id: uuid.UUID | None
    avatar_url: str | None = None

    class Config:
        from_attributes = True


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    account: AccountResponse


class MessageResponse(BaseModel):
    message: str


class RegisterRequest(BaseModel):
    name: str
    email: EmailStr
    password: str
    confirm_password: str
    role: AccountRole = AccountRole.OWNER

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = (v or "").strip()
        if len(v) < 3:
            raise ValueError("Nome deve ter pelo menos 3 caracteres")
        return v

    @field_validator("email", mode="before")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return normalize_email(v)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        if not v or len(v) < 6:
            raise ValueError("Senha deve ter pelo menos 6 caracteres")
        return v

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: AccountRole) -> AccountRole:
        # MASTER só via MASTER_EMAILS
        if v == AccountRole.MASTER:
            raise ValueError("Role deve ser ADMIN ou OWNER")
        return v

    @model_validator(mode="after")
    def validate_confirmation(self):
        if self.password != self.confirm_password:
            raise ValueError("As senhas não coincidem")
        return self


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return (v or "").strip().lower()


class ForgotPasswordRequest(BaseModel):
    email: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return (v or "").strip().lower()


class ResetPasswordRequest(BaseModel):
    token: str
    password: str
    confirm_password: str

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        if not v or len(v) < 6:
            raise ValueError("Senha deve ter pelo menos 6 caracteres")
        return v

    @model_validator(mode="after")
    def validate_confirmation(self):
        if self.password != self.confirm_password:
            raise ValueError("As senhas não coincidem")
        return self


def _issue_token(account: Account) -> TokenResponse:
    token = create_access_token(
        account_id=str(account.id),
        role=account.role.value,
        email=account.email,
        name=account.name,
        tenant_id=str(account.tenant_id) if account.tenant_id else None,
    )
    return TokenResponse(access_token=token, account=AccountResponse.model_validate(account))


@router.post("/register", response_model=TokenResponse, status_code=201)
def register(body: RegisterRequest, session: Session = Depends(get_session)):
    """
    Cria conta com email e senha.

    - Email em MASTER_EMAILS vira MASTER.
    - ADMIN precisa de uma construtora com admin_email igual ao email informado.
    - OWNER é vinculado aos cadastros de proprietário com o mesmo email.
    """
    try:
        logger.info(f"Registrando conta: email={body.email}, role={body.role.value}")
        existing = session.exec(select(Account).where(Account.email == body.email)).first()
        if existing:
            logger.warning(f"Email já cadastrado: {body.email}")
            raise HTTPException(status_code=409, detail="Email já cadastrado")

        role = body.role
        tenant_id = None
        if body.email in _master_emails():
            role = AccountRole.MASTER
        elif role == AccountRole.ADMIN:
            tenant = session.exec(
                select(Tenant).where(func.lower(Tenant.admin_email) == body.email)
            ).first()
            if not tenant:
                logger.warning(f"Registro ADMIN sem construtora: email={body.email}")
                raise HTTPException(
                    status_code=403,
                    detail="Nenhuma construtora cadastrada com este email de administrador",
                )
            if tenant.status == TenantStatus.SUSPENDED:
                raise HTTPException(status_code=403, detail="Construtora suspensa")
            tenant_id = tenant.id

        account = Account(
            email=body.email,
            name=body.name,
            password_hash=get_password_hash(body.password),
            role=role,
            tenant_id=tenant_id,
        )
        session.add(account)
        session.flush()

        linked = 0
        if role == AccountRole.OWNER:
            owners = session.exec(
                select(Owner).where(func.lower(Owner.email) == body.email, Owner.account_id.is_(None))  # type: ignore[union-attr]
            ).all()
            for owner in owners:
                owner.account_id = account.id
                owner.updated_at = utc_now()
                session.add(owner)
                linked += 1

        try:
            session.commit()
        except IntegrityError as e:
            session.rollback()
            logger.warning(f"Conflito ao registrar conta {body.email}: {e}")
            raise HTTPException(status_code=409, detail="Email já cadastrado") from e
        session.refresh(account)

        record(
            session,
            action="CREATE",
            entity_type="ACCOUNT",
            entity_id=account.id,
            details=f"Conta criada ({role.value})",
            actor=account,
            data={"linked_owners": linked} if linked else None,
        )
        return _issue_token(account)
    except HTTPException:
        raise
    except Exception as e:
        session.rollback()
        logger.error(f"Erro ao registrar conta: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Erro ao registrar conta: {str(e)}") from e


@router.post("/login", response_model=TokenResponse)
def login(body: LoginRequest, session: Session = Depends(get_session)):
    account = session.exec(select(Account).where(Account.email == body.email)).first()
    if not account or not verify_password(body.password, account.password_hash):
        logger.warning(f"Falha de login: email={body.email}")
        record(
            session,
            action="LOGIN_FAILED",
            entity_type="ACCOUNT",
            entity_id=account.id if account else None,
            details=f"Tentativa de login falhou para {body.email}",
            tenant_id=account.tenant_id if account else None,
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Email ou senha inválidos",
        )

    if account.role == AccountRole.ADMIN:
        tenant = session.get(Tenant, account.tenant_id) if account.tenant_id else None
        if not tenant or tenant.status == TenantStatus.SUSPENDED:
            logger.warning(f"Login bloqueado (construtora suspensa): email={body.email}")
            raise HTTPException(status_code=403, detail="Construtora suspensa. Entre em contato com o suporte.")

    record(session, action="LOGIN", entity_type="ACCOUNT", entity_id=account.id, details="Login", actor=account)
    return _issue_token(account)


@router.post("/logout", status_code=204)
def logout(
    account: Account = Depends(get_current_account),
    session: Session = Depends(get_session),
):
    """JWT é stateless: o logout apenas registra o evento."""
    record(session, action="LOGOUT", entity_type="ACCOUNT", entity_id=account.id, details="Logout", actor=account)


@router.post("/forgot-password", response_model=MessageResponse, status_code=202)
async def forgot_password(body: ForgotPasswordRequest, session: Session = Depends(get_session)):
    """
    Sempre 202, exista ou não a conta (não revela emails cadastrados).
    """
    message = "Se o email estiver cadastrado, você receberá um link para redefinir a senha."
    try:
        account = session.exec(select(Account).where(Account.email == body.email)).first()
        if not account:
            logger.info(f"Reset de senha solicitado para email não cadastrado: {body.email}")
            return MessageResponse(message=message)

        job = create_password_reset_job(session, account)
        await queue.enqueue_job(PASSWORD_RESET_JOB, str(job.id))
        record(
            session,
            action="PASSWORD_RESET_REQUEST",
            entity_type="ACCOUNT",
            entity_id=account.id,
            details="Solicitação de redefinição de senha",
            actor=account,
        )
        return MessageResponse(message=message)
    except Exception as e:
        session.rollback()
        logger.error(f"Erro ao solicitar redefinição de senha: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Erro ao solicitar redefinição de senha: {str(e)}") from e


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(body: ResetPasswordRequest, session: Session = Depends(get_session)):
    payload = verify_password_reset_token(body.token)
    account_id = parse_uuid(payload.get("sub"))
    account = session.get(Account, account_id) if account_id else None
    # Token de uso único: o fingerprint muda quando a senha muda
    if not account or not reset_token_matches(payload, account.password_hash):
        logger.warning(f"Token de reset inválido ou já utilizado: sub={payload.get('sub')}")
        raise HTTPException(status_code=400, detail="Link de redefinição inválido ou expirado")

    try:
        account.password_hash = get_password_hash(body.password)
        account.updated_at = utc_now()
        session.add(account)
        session.commit()
    except Exception as e:
        session.rollback()
        logger.error(f"Erro ao redefinir senha: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Erro ao redefinir senha: {str(e)}") from e

    record(session, action="PASSWORD_RESET", entity_type="ACCOUNT", entity_id=account.id, details="Senha redefinida", actor=account)
    return MessageResponse(message="Senha redefinida com sucesso")
