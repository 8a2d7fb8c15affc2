"""
Display strings the e-CD site uses for coded values.

The site's select widgets carry the long form ("US - UNITED STATES") in
their title attribute. Codes missing from a table pass through unchanged so
the dropdown engine can still try a prefix match.
"""

from typing import Dict, Tuple

PORT_NAMES: Dict[str, str] = {
    "CGK": "JAKARTA (CGK) / SOEKARNO HATTA",
    "DPS": "BALI (DPS) / NGURAH RAI",
    "JOG": "YOGYAKARTA (JOG) / ADISUTCIPTO",
    "MLG": "MALANG (MLG) / ABDUL RACHMAN SALEH",
    "SOC": "SOLO (SOC) / ADISUMARMO",
    "BDO": "BANDUNG (BDO) / HUSEIN SASTRANEGARA",
}

COUNTRY_NAMES: Dict[str, str] = {
    "US": "US - UNITED STATES",
    "GB": "GB - UNITED KINGDOM",
    "AU": "AU - AUSTRALIA",
    "SG": "SG - SINGAPORE",
    "MY": "MY - MALAYSIA",
    "TH": "TH - THAILAND",
    "CA": "CA - CANADA",
    "NZ": "NZ - NEW ZEALAND",
    "DE": "DE - GERMANY",
    "FR": "FR - FRANCE",
    "NL": "NL - NETHERLANDS",
    "JP": "JP - JAPAN",
    "KR": "KR - KOREA, REPUBLIC OF",
    "CN": "CN - CHINA",
    "IN": "IN - INDIA",
}

CURRENCY_NAMES: Dict[str, str] = {
    "IDR": "IDR - Rupiah Indonesia (IDR)",
    "USD": "USD - Dolar Amerika Serikat (USD)",
    "EUR": "EUR - Euro (EUR)",
    "GBP": "GBP - Pound Sterling (GBP)",
    "JPY": "JPY - Yen Jepang (JPY)",
    "CNY": "CNY - Yuan China (CNY)",
    "SGD": "SGD - Dolar Singapura (SGD)",
    "MYR": "MYR - Ringgit Malaysia (MYR)",
    "THB": "THB - Baht Thailand (THB)",
    "AUD": "AUD - Dolar Australia (AUD)",
    "KRW": "KRW - Won Korea Selatan (KRW)",
}


def _lookup(table: Dict[str, str], code: str) -> str:
    code = (code or "").strip()
    return table.get(code.upper(), code)


def port_display(code: str) -> str:
    return _lookup(PORT_NAMES, code)


def country_display(code: str) -> str:
    return _lookup(COUNTRY_NAMES, code)


def currency_display(code: str) -> str:
    return _lookup(CURRENCY_NAMES, code)


def _split_iso(iso_date: str) -> Tuple[str, str, str]:
    parts = (iso_date or "").strip().split("-")
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        raise ValueError(f"Expected a YYYY-MM-DD date, got '{iso_date}'")
    year, month, day = parts
    return day.zfill(2), month.zfill(2), year


def split_birth_date(iso_date: str) -> Tuple[str, str, str]:
    """'1990-05-15' -> ('15', '05', '1990'); day and month keep their zero padding."""
    return _split_iso(iso_date)


def format_arrival_date(iso_date: str) -> str:
    """'2025-07-20' -> '20-07-2025'"""
    day, month, year = _split_iso(iso_date)
    return f"{day}-{month}-{year}"


def passport_name(name: str) -> str:
    return (name or "").strip().upper()
