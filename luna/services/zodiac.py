"""Sun sign from a birth date (tropical zodiac, fixed cusp days)."""

from datetime import date

# (sign, (start_month, start_day)) in calendar order from Capricorn's tail
_SIGN_STARTS = [
    ("Capricorn", (1, 1)),
    ("Aquarius", (1, 20)),
    ("Pisces", (2, 19)),
    ("Aries", (3, 21)),
    ("Taurus", (4, 20)),
    ("Gemini", (5, 21)),
    ("Cancer", (6, 21)),
    ("Leo", (7, 23)),
    ("Virgo", (8, 23)),
    ("Libra", (9, 23)),
    ("Scorpio", (10, 23)),
    ("Sagittarius", (11, 22)),
    ("Capricorn", (12, 22)),
]

ZODIAC_SIGNS = [
    "Aries", "Taurus", "Gemini", "Cancer", "Leo", "Virgo",
    "Libra", "Scorpio", "Sagittarius", "Capricorn", "Aquarius", "Pisces",
]


def sun_sign(birth_date: date) -> str:
    """Sun sign for ``birth_date``."""
    key = (birth_date.month, birth_date.day)
    sign = "Capricorn"
    for name, start in _SIGN_STARTS:
        if key >= start:
            sign = name
    return sign
