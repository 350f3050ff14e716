"""User-facing (Spanish) reply text for tool results."""

from datetime import datetime
from typing import Optional

from lendchat.config import settings
from lendchat.schemas.lending_schema import PaymentRecord, StaffRecord

UNKNOWN_TOOL = "Herramienta desconocida: {tool}"
TOOL_NOT_ALLOWED = "La herramienta {tool} no está disponible en esta conversación."
TOOL_FAILED = "No se pudo completar la operación {tool}. Por favor, intenta de nuevo más tarde."
INVALID_CONTEXT = "No se pudo verificar la identidad de quien realiza la solicitud."

MISSING_USER_ID = "Se requiere el ID del cobrador, pero no está disponible en el contexto."
MISSING_PHONE = "Se requiere el número de teléfono, pero no está disponible en el contexto."
STAFF_ONLY = "Esta operación solo está disponible para el personal autorizado."
ADMIN_ONLY = "Solo un administrador puede realizar esta operación."

MISSING_REFERRER = (
    "Se requiere referred_by_id. Pregunta al usuario '¿Quién te refirió?', usa "
    "list_users con role='REFERRER' para obtener los referidores con sus IDs, "
    "haz coincidir el nombre y usa el ID del referidor seleccionado."
)
MISSING_MEMBER_PHONE = "Se requiere el teléfono del nuevo miembro."
INVALID_PHONE = "Número de teléfono inválido: {phone}. Debe ser un número dominicano (ej: 809-123-4567)."

INVALID_LOAN_NUMBER = (
    "ID de préstamo inválido: {raw}. Debe ser un número positivo (ej: 10000, 10001)."
)
LOAN_NOT_FOUND = "Préstamo no encontrado con ID: {loan_id}"
LOAN_NOT_ACTIVE = "El préstamo {loan_id} no está activo. Estado actual: {status}"
LOAN_WITHOUT_COLLECTOR = "Este préstamo no tiene un cobrador asignado."
LOAN_NOT_OWNED = (
    "No tienes permiso para registrar pagos para este préstamo. "
    "Este préstamo está asignado a otro cobrador."
)
INVALID_AMOUNT = "Monto de pago inválido: {raw}. Debe ser un número positivo."
INVALID_LIMIT = "Límite inválido: {raw}. Debe ser un número entre 1 y {maximum}."
INVALID_PAYMENT_ID = (
    'ID de pago inválido: "{raw}". El ID debe ser un UUID válido '
    "(formato: xxxxxxxx-xxxx-xxxx-xxxx-xxxxxxxxxxxx). "
    "Asegúrate de usar el ID del pago, no el número de préstamo."
)

MEMBER_NOT_FOUND = "Miembro no encontrado: {member_id}"
MEMBER_NOT_FOUND_BY_PHONE = "Miembro no encontrado con el teléfono: {phone}"
MEMBER_FOUND = "Información del miembro obtenida."
LOAN_FOUND = "Información del préstamo obtenida."

PAYMENT_OK = "OK"
PAYMENT_RECEIPT_PENDING = "OK - recibo pendiente, paymentId: {payment_id}"
RECEIPT_SENT = "Aquí está el recibo solicitado."
RECEIPT_FAILED = "Error al enviar el recibo por WhatsApp: {error}"

VOICE_NOT_SUPPORTED = (
    "Lo siento, por el momento no puedo procesar notas de voz. "
    "Por favor, escríbeme tu mensaje."
)


def format_amount(amount: float) -> str:
    """Format a money amount, e.g. ``RD$ 1,500.00``."""
    return f"{settings.locale.currency_prefix} {amount:,.2f}"


def format_date(value: datetime) -> str:
    return value.strftime(settings.locale.date_format)


ARGUMENTS_NOT_OBJECT = "los argumentos no son un objeto JSON válido"

# pydantic error types mapped to the phrase shown after the field name
_VALIDATION_PHRASES = {
    "missing": "es obligatorio",
    "enum": "no es un valor permitido",
    "literal_error": "no es un valor permitido",
    "string_too_short": "no puede estar vacío",
    "too_short": "no puede estar vacío",
    "string_too_long": "es demasiado largo",
    "too_long": "es demasiado largo",
}


def describe_validation_error(error_type: str) -> str:
    """Spanish phrase for a pydantic error type."""
    if error_type in _VALIDATION_PHRASES:
        return _VALIDATION_PHRASES[error_type]
    if error_type.endswith(("_type", "_parsing")):
        return "tiene un formato inválido"
    if error_type.startswith(("greater_than", "less_than")):
        return "está fuera del rango permitido"
    return "no es válido"


def build_invalid_arguments(tool: str, errors: list[tuple[str, str]]) -> str:
    """Describe which arguments failed validation."""
    details = "; ".join(f"{field} {phrase}" for field, phrase in errors)
    return f"Datos inválidos para {tool}: {details}"


def build_malformed_arguments(tool: str) -> str:
    return f"Datos inválidos para {tool}: {ARGUMENTS_NOT_OBJECT}"


def build_member_registered(name: str) -> str:
    first_name = name.split()[0] if name.split() else name
    return (
        f"Estimado {first_name}, registramos su información y el equipo "
        "se pondrá en contacto pronto."
    )


def build_users_list(users: list[StaffRecord], role: Optional[str]) -> str:
    role_msg = f" con rol {role}" if role else ""
    if not users:
        return f"No se encontraron usuarios{role_msg} en el sistema."
    lines = []
    for user in users:
        roles = ", ".join(r.value for r in user.roles) or "Sin roles"
        lines.append(f"- {user.name} (ID: {user.id}, Tel: {user.phone}, Roles: {roles})")
    return f"Usuarios disponibles{role_msg}:\n" + "\n".join(lines)


def build_loans_found(count: int, owner: Optional[str] = None) -> str:
    suffix = f" para {owner}" if owner else ""
    return f"Se encontraron {count} préstamos{suffix}."


def build_payment_line(payment: PaymentRecord, is_last: bool) -> str:
    prefix = "ÚLTIMO PAGO - " if is_last else ""
    return (
        f"{prefix}Monto: {format_amount(payment.amount)}, "
        f"Fecha: {format_date(payment.paid_at)}, Estado: {payment.status}"
    )


def build_payments_summary(loan_id: int, payments: list[PaymentRecord]) -> str:
    """Summarize a loan's payments. ``payments`` is ordered newest first."""
    if not payments:
        return f"No se encontraron pagos para el préstamo #{loan_id}."
    last = payments[0]
    last_text = (
        f"Último pago: {format_amount(last.amount)} el {format_date(last.paid_at)}."
    )
    if len(payments) == 1:
        return (
            f"Se encontró 1 pago para el préstamo #{loan_id}. {last_text} "
            f"ID del pago: {last.id}"
        )
    return (
        f"Se encontraron {len(payments)} pagos para el préstamo #{loan_id}. {last_text} "
        f"ID del último pago: {last.id}"
    )
