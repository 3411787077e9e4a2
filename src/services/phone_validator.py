"""
Validation and normalisation of Russian mobile phone numbers.
"""
import re

# Optional country/trunk prefix, mobile prefix digit 4/8/9, then 3-2-2 body
PHONE_PATTERN = re.compile(
    r"^(\+7|7|8)?[\s\-]?\(?[489][0-9]{2}\)?[\s\-]?[0-9]{3}[\s\-]?[0-9]{2}[\s\-]?[0-9]{2}$"
)
NON_DIGITS = re.compile(r"[^0-9]")


class PhoneValidator:
    """Validates contact phones entered in the request flow"""

    @staticmethod
    def validate(raw: str) -> bool:
        """
        Accepts +7 / 7 / 8 prefixed or bare 10-digit mobile numbers,
        with optional spaces, dashes and parentheses.
        """
        if not raw:
            return False

        phone = raw.strip()
        if not PHONE_PATTERN.fullmatch(phone):
            return False

        digits = NON_DIGITS.sub("", phone)
        if digits.startswith("7") or digits.startswith("8"):
            return len(digits) == 11
        return len(digits) == 10

    @staticmethod
    def normalize(raw: str) -> str:
        """
        Formats a phone as +7 (XXX) XXX-XX-XX.
        Input that cannot be formatted is returned unchanged.
        """
        digits = NON_DIGITS.sub("", raw or "")

        if len(digits) == 11 and digits[0] in ("7", "8"):
            significant = digits[1:]
        elif len(digits) == 10:
            significant = digits
        else:
            return raw

        return f"+7 ({significant[:3]}) {significant[3:6]}-{significant[6:8]}-{significant[8:]}"

    @staticmethod
    def format_hint() -> str:
        return (
            "• +7 (XXX) XXX-XX-XX\n"
            "• 8 (XXX) XXX-XX-XX\n"
            "• XXX-XXX-XX-XX"
        )
