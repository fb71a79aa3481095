"""
Envio de emails transacionais (redefinição de senha) usando Resend.

Sem RESEND_API_KEY o email é apenas logado e o envio é reportado como falha,
para que o job correspondente fique registrado como FAILED.
"""
import logging
import os
import re
from typing import Tuple

import resend

logger = logging.getLogger(__name__)

_DOMAIN_PATTERN = re.compile(r"\b([a-zA-Z0-9]([a-zA-Z0-9\-]{0,61}[a-zA-Z0-9])?\.)+[a-zA-Z]{2,}")


def build_reset_link(token: str, app_url: str | None = None) -> str:
    base = (app_url or os.getenv("APP_URL", "http://localhost:3000")).rstrip("/")
    return f"{base}/reset-password?token={token}"


def _get_reset_template_html(name: str, reset_link: str) -> str:
    return f"""
<!DOCTYPE html>
<html lang="pt-BR">
<head>
    <meta charset="UTF-8">
    <title>Redefinição de senha</title>
</head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
    <p>Olá <strong>{name}</strong>,</p>
    <p>Recebemos uma solicitação para redefinir a sua senha. O link abaixo é válido por 1 hora e só pode ser usado uma vez.</p>
    <div style="text-align: center; margin: 30px 0;">
        <a href="{reset_link}" style="background-color: #1e3a5f; color: white; padding: 12px 24px; text-decoration: none; border-radius: 5px; display: inline-block; font-weight: bold;">
            Redefinir senha
        </a>
    </div>
    <p style="word-break: break-all; color: #1e3a5f;">{reset_link}</p>
    <p>Se você não fez esta solicitação, ignore este email.</p>
    <div style="border-top: 1px solid #dee2e6; padding-top: 20px; margin-top: 30px; font-size: 12px; color: #6c757d;">
        <p style="margin: 0;">Este é um email automático. Por favor, não responda.</p>
    </div>
</body>
</html>
    """.strip()


def _get_reset_template_text(name: str, reset_link: str) -> str:
    return f"""
Olá {name},

Recebemos uma solicitação para redefinir a sua senha.
Acesse o link abaixo (válido por 1 hora, uso único):
{reset_link}

Se você não fez esta solicitação, ignore este email.
    """.strip()


def _friendly_error(error_msg_raw: str) -> str:
    lowered = error_msg_raw.lower()
    if "domain" in lowered and ("not verified" in lowered or "unverified" in lowered):
        domain_match = _DOMAIN_PATTERN.search(error_msg_raw)
        if domain_match:
            return (
                f"Domínio '{domain_match.group(0)}' não está verificado no Resend. "
                f"Adicione e verifique o domínio em https://resend.com/domains"
            )
        return "Domínio de email não está verificado no Resend. Adicione e verifique o domínio em https://resend.com/domains"
    if "invalid" in lowered:
        return "Configuração de email inválida. Verifique EMAIL_FROM e RESEND_API_KEY."
    if "unauthorized" in lowered or "401" in lowered:
        return "Chave de API do Resend inválida ou expirada. Verifique RESEND_API_KEY."
    if "rate limit" in lowered or "quota" in lowered:
        return "Limite de envio de emails excedido. Tente novamente mais tarde."
    return f"Erro ao enviar email: {error_msg_raw[:100]}"


def send_password_reset_email(to_email: str, name: str, reset_link: str) -> Tuple[bool, str]:
    """
    Envia o link de redefinição de senha.

    Returns:
        Tupla (success, error_message); error_message vazio em caso de sucesso.
    """
    logger.info(f"[EMAIL] Iniciando envio de redefinição de senha para {to_email}")
    resend_api_key = os.getenv("RESEND_API_KEY")
    email_from = os.getenv("EMAIL_FROM")

    if not resend_api_key:
        error_msg = "Chave de API do Resend não configurada. Configure RESEND_API_KEY no ambiente."
        logger.warning(f"[EMAIL] {error_msg} Link apenas logado para {to_email}: {reset_link}")
        return False, error_msg

    if not email_from:
        error_msg = "Endereço de email remetente não configurado. Configure EMAIL_FROM no ambiente."
        logger.error(f"[EMAIL] {error_msg} Não é possível enviar email para {to_email}")
        return False, error_msg

    resend.api_key = resend_api_key
    params = {
        "from": email_from,
        "to": [to_email],
        "subject": "Redefinição de senha",
        "html": _get_reset_template_html(name, reset_link),
        "text": _get_reset_template_text(name, reset_link),
    }
    try:
        email_response = resend.Emails.send(params)
    except Exception as resend_error:
        error_msg_raw = str(resend_error)
        # Nunca deixar a chave vazar em log ou resposta
        if resend_api_key in error_msg_raw:
            error_msg_raw = error_msg_raw.replace(resend_api_key, "***REDACTED***")
        logger.error(f"[EMAIL] FALHA ao enviar via Resend para {to_email}: {error_msg_raw}")
        return False, _friendly_error(error_msg_raw)

    if isinstance(email_response, dict) and email_response.get("id"):
        logger.info(f"[EMAIL] Enviado para {to_email} (id={email_response['id']})")
        return True, ""
    if getattr(email_response, "id", None):
        return True, ""

    error_msg = f"Resposta inesperada do serviço de email: {email_response}"
    logger.error(f"[EMAIL] FALHA - {error_msg} para {to_email}")
    return False, error_msg
