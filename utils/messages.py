"""Customer-facing texts (Hebrew). Nothing here may include internal error detail."""

from datetime import date

from services.outcomes import ErrorKind

HEBREW_DAYS = ["ראשון", "שני", "שלישי", "רביעי", "חמישי", "שישי", "שבת"]

GENERIC_ERROR = "אירעה שגיאה, נסה שוב"

ERROR_MESSAGES = {
    ErrorKind.VALIDATION_ERROR: "חסרים שדות חובה",
    ErrorKind.INVALID_DATE: "תאריך לא תקין",
    ErrorKind.INVALID_OR_EXPIRED_CODE: "קוד שגוי או פג תוקף",
    ErrorKind.RATE_LIMITED: "יותר מדי ניסיונות, נסה שוב מאוחר יותר",
    ErrorKind.LOCKED_OUT: "החשבון נעול זמנית, נסה שוב מאוחר יותר",
    ErrorKind.SLOT_UNAVAILABLE: "השעה הזו כבר תפוסה או לא זמינה",
    ErrorKind.UNAUTHORIZED: "Unauthorized",
    ErrorKind.FORBIDDEN: "Forbidden - Admin only",
    ErrorKind.INTERNAL_ERROR: GENERIC_ERROR,
}

VALIDATION_MESSAGES = {
    "missing_fields": "חסרים שדות חובה",
    "invalid_phone": "מספר טלפון לא תקין",
    "invalid_code_format": "קוד לא תקין",
    "invalid_name": "שם לא תקין",
    "invalid_date_format": "תאריך לא תקין",
    "invalid_time": "שעה לא תקינה",
}


def error_message(kind: ErrorKind, detail=None) -> str:
    if kind is ErrorKind.VALIDATION_ERROR and detail in VALIDATION_MESSAGES:
        return VALIDATION_MESSAGES[detail]
    return ERROR_MESSAGES.get(kind, GENERIC_ERROR)


def format_date_hebrew(value) -> str:
    """2026-10-18 -> 'יום ראשון 18/10'."""
    day = value if isinstance(value, date) else date.fromisoformat(str(value))
    # isoweekday: Monday=1 .. Sunday=7; HEBREW_DAYS starts on Sunday
    name = HEBREW_DAYS[day.isoweekday() % 7]
    return f"יום {name} {day.day}/{day.month}"


# ---------- outbound SMS ----------

SMS_VERIFICATION = "verification"
SMS_BOOKING_CONFIRMATION = "booking_confirmation"
SMS_BOOKING_CANCELLED = "booking_cancelled"


def render_sms(kind: str, data: dict, signature: str) -> str:
    data = data or {}
    if kind == SMS_VERIFICATION:
        body = f"קוד האימות שלך הוא: {data['code']}"
    elif kind == SMS_BOOKING_CONFIRMATION:
        body = f"התור שלך אושר!\nתאריך: {format_date_hebrew(data['date'])}\nשעה: {data['time']}"
    elif kind == SMS_BOOKING_CANCELLED:
        body = f"התור שלך בתאריך {format_date_hebrew(data['date'])} בשעה {data['time']} בוטל."
    else:
        raise ValueError(f"Unknown SMS kind: {kind}")
    return f"{body}\n{signature}" if signature else body


# ---------- inbound SMS replies ----------

REPLY_EMPTY = "תודה. לא התקבלה הודעה תקינה."
REPLY_INTERNAL_ERROR = "אירעה שגיאה פנימית, נסה שוב מאוחר יותר."


def reply_cancelled(booking) -> str:
    return f"התור שלך בתאריך {booking.booking_date.isoformat()} בשעה {booking.booking_time} בוטל בהצלחה."


def reply_not_cancellable(lead_hours: int) -> str:
    return (
        f"לא ניתן לבטל את התור - הביטול חייב להיעשות לפחות {lead_hours} שעות לפני התור "
        "או שאין תורים מתאימים."
    )


def reply_help(command: str) -> str:
    return f"הודעה לא מזוהה. לשליחת ביטול תשלח {command} ואנו נבדוק את האפשרות לביטול."
