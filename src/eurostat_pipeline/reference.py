"""Reference data: the closed entity set and indicator vocabulary.

Indicators are a closed enum so that every dispatch on an indicator is
exhaustive; tags outside the vocabulary raise ``UnknownIndicatorError``.
"""

from enum import Enum
from typing import Dict, Tuple

from eurostat_pipeline.exceptions import UnknownIndicatorError

COUNTRIES: Dict[str, str] = {
    "BE": "Belgium",
    "BG": "Bulgaria",
    "CZ": "Czechia",
    "DK": "Denmark",
    "DE": "Germany",
    "EE": "Estonia",
    "IE": "Ireland",
    "EL": "Greece",
    "ES": "Spain",
    "FR": "France",
    "HR": "Croatia",
    "IT": "Italy",
    "CY": "Cyprus",
    "LV": "Latvia",
    "LT": "Lithuania",
    "LU": "Luxembourg",
    "HU": "Hungary",
    "MT": "Malta",
    "NL": "Netherlands",
    "AT": "Austria",
    "PL": "Poland",
    "PT": "Portugal",
    "RO": "Romania",
    "SI": "Slovenia",
    "SK": "Slovakia",
    "FI": "Finland",
    "SE": "Sweden",
}

COUNTRY_CODES: Tuple[str, ...] = tuple(COUNTRIES)


class Indicator(str, Enum):
    """The three indicators tracked per country and year."""

    OUTPUT = "gdp"  # GDP per capita, chain-linked euro
    LIFE_EXPECTANCY = "life"
    POPULATION = "pop"

    @classmethod
    def parse(cls, name: str) -> "Indicator":
        """Resolve an internal indicator name (``gdp``, ``life``, ``pop``)."""
        try:
            return cls(name)
        except ValueError:
            raise UnknownIndicatorError(f"Unknown indicator: {name!r}") from None


# Tags used by the local fallback file
LOCAL_INDICATOR_TAGS: Dict[str, Indicator] = {
    "PIB": Indicator.OUTPUT,
    "SV": Indicator.LIFE_EXPECTANCY,
    "POP": Indicator.POPULATION,
}

# Indicators drawn on continuous, cross-year stable axes
SCALED_INDICATORS: Tuple[Indicator, ...] = (Indicator.OUTPUT, Indicator.LIFE_EXPECTANCY)

# Unit codes probed, in order, when an output response carries a unit dimension
OUTPUT_UNIT_VARIANTS: Tuple[str, ...] = ("CLV10_EUR_HAB", "CLV20_EUR_HAB")

ENTITY_DIMENSION = "geo"
TIME_DIMENSION = "time"
UNIT_DIMENSION = "unit"


def indicator_from_tag(tag: str) -> Indicator:
    """Map a local-file indicator tag to its ``Indicator``.

    :raises UnknownIndicatorError: If the tag is not part of the vocabulary
    """
    try:
        return LOCAL_INDICATOR_TAGS[tag]
    except KeyError:
        raise UnknownIndicatorError(f"Unknown local indicator tag: {tag!r}") from None


def is_known_entity(code) -> bool:
    return code in COUNTRIES
