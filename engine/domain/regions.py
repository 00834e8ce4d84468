# SPDX-License-Identifier: Apache-2.0

"""
Region catalog and pure mapping functions used by region resolution.
"""

from typing import Optional

from models.enums import Region

GLOBAL_DEFAULT = Region.GLOBAL_DEFAULT.value
UNSPECIFIED_COUNTRY = "unspecified"

KNOWN_REGIONS = frozenset(region.value for region in Region)

COUNTRY_REGION_MAP = {
    # North America
    'US': 'north_america',
    'CA': 'north_america',
    'MX': 'north_america',

    # Europe
    'GB': 'europe',
    'DE': 'europe',
    'FR': 'europe',
    'ES': 'europe',
    'IT': 'europe',
    'NL': 'europe',
    'PL': 'europe',
    'SE': 'europe',
    'NO': 'europe',
    'DK': 'europe',

    # South Asia
    'IN': 'south_asia',
    'PK': 'south_asia',
    'BD': 'south_asia',
    'LK': 'south_asia',
    'NP': 'south_asia',

    # Sub-Saharan Africa
    'KE': 'africa',
    'NG': 'africa',
    'GH': 'africa',
    'UG': 'africa',
    'TZ': 'africa',
    'ZA': 'africa',
    'ET': 'africa',

    # Latin America
    'BR': 'latin_america',
    'AR': 'latin_america',
    'CO': 'latin_america',
    'PE': 'latin_america',
    'CL': 'latin_america',
    'VE': 'latin_america',

    # East Asia
    'CN': 'east_asia',
    'JP': 'east_asia',
    'KR': 'east_asia',
    'TW': 'east_asia',

    # Southeast Asia
    'TH': 'southeast_asia',
    'VN': 'southeast_asia',
    'ID': 'southeast_asia',
    'MY': 'southeast_asia',
    'PH': 'southeast_asia',
    'SG': 'southeast_asia',

    # Middle East
    'SA': 'middle_east',
    'AE': 'middle_east',
    'TR': 'middle_east',
    'IR': 'middle_east',
    'EG': 'middle_east',

    # Oceania
    'AU': 'oceania',
    'NZ': 'oceania',
}

LANGUAGE_REGION_MAP = {
    'en': 'north_america',
    'es': 'latin_america',
    'pt': 'latin_america',
    'fr': 'europe',
    'de': 'europe',
    'it': 'europe',
    'hi': 'south_asia',
    'bn': 'south_asia',
    'zh': 'east_asia',
    'ja': 'east_asia',
    'ko': 'east_asia',
    'ar': 'middle_east',
    'sw': 'africa',
    'am': 'africa',
    'ha': 'africa',
    'th': 'southeast_asia',
    'vi': 'southeast_asia',
    'id': 'southeast_asia',
}


def normalize_region(region: Optional[str]) -> Optional[str]:
    """Return the canonical region key, or None when the value is not a known region."""
    if not region:
        return None
    candidate = str(region).strip().lower()
    return candidate if candidate in KNOWN_REGIONS else None


def normalize_country(country: Optional[str]) -> Optional[str]:
    """Return an upper-cased country code, or None for blank input."""
    if not country or not str(country).strip():
        return None
    return str(country).strip().upper()


def map_country_to_region(country_code: Optional[str]) -> Optional[str]:
    """Map an ISO country code to its region; unknown codes map to None."""
    code = normalize_country(country_code)
    if code is None:
        return None
    return COUNTRY_REGION_MAP.get(code)


def primary_language(accept_language: Optional[str]) -> Optional[str]:
    """
    Extract the primary language subtag from an Accept-Language header.

    ``"pt-BR,pt;q=0.9,en;q=0.8"`` yields ``"pt"``.
    """
    if not accept_language:
        return None
    first = accept_language.split(',')[0].split(';')[0].strip()
    tag = first.split('-')[0].strip().lower()
    if not tag or tag == '*':
        return None
    return tag


def map_language_to_region(accept_language: Optional[str]) -> Optional[str]:
    """Map the primary language of an Accept-Language header to a region."""
    language = primary_language(accept_language)
    if language is None:
        return None
    return LANGUAGE_REGION_MAP.get(language)
