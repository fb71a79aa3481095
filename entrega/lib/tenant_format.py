"""
Datas e tamanhos conforme a região da construtora.

Reutilizar sempre que uma data for apresentada (notas geradas, emails, respostas)
ou quando o "hoje" precisar respeitar o fuso do tenant (status de garantias).
"""

from datetime import date, datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DEFAULT_TIMEZONE = "America/Sao_Paulo"

# Mapeamento BCP 47 (locale) -> strftime para data curta.
# Fallback: ISO %Y-%m-%d.
_DATE_FORMAT_BY_LOCALE: dict[str, str] = {
    "pt-BR": "%d/%m/%Y",
    "pt": "%d/%m/%Y",
    "en-US": "%m/%d/%Y",
    "en": "%d/%m/%Y",
    "es": "%d/%m/%Y",
}


def _format_for_locale(d: date, locale: str) -> str:
    if not locale or not locale.strip():
        return d.strftime("%Y-%m-%d")
    locale = locale.strip()
    fmt = _DATE_FORMAT_BY_LOCALE.get(locale)
    if not fmt:
        # Tentar só a parte da língua (ex: pt de pt-BR)
        fmt = _DATE_FORMAT_BY_LOCALE.get(locale.split("-")[0].lower())
    if not fmt:
        return d.strftime("%Y-%m-%d")
    return d.strftime(fmt)


def format_date_for_tenant(d: date, locale: str) -> str:
    """
    Formata uma data no formato da região do tenant.

    :param d: Data a formatar.
    :param locale: Locale BCP 47 do tenant (ex: "pt-BR").
    :return: String formatada (ex: "01/02/2026" para pt-BR).
    """
    return _format_for_locale(d, locale or "")


def today_for_tenant(timezone: str | None) -> date:
    """Data de hoje no fuso IANA do tenant (fallback: America/Sao_Paulo)."""
    try:
        tz = ZoneInfo(timezone or DEFAULT_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError):
        tz = ZoneInfo(DEFAULT_TIMEZONE)
    return datetime.now(tz).date()


def format_file_size(size_bytes: int | None) -> str:
    """Tamanho em MB com duas casas (ex: "1.50 MB")."""
    return f"{(size_bytes or 0) / (1024 * 1024):.2f} MB"
