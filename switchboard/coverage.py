from __future__ import annotations

import json
import logging
import unicodedata
from dataclasses import dataclass
from pathlib import Path

from langchain_core.tools import BaseTool, tool

LOGGER = logging.getLogger(__name__)

ALLOWED_DEPARTMENTS = (
    "Antioquia",
    "Córdoba",
    "Chocó",
    "Norte de Santander",
    "Guainía",
    "Boyacá",
    "Arauca",
)
COVERAGE_CONFIRMED_MESSAGE = "Perfecto, tu ciudad está dentro de nuestra cobertura."
COVERAGE_REDIRECT_MESSAGE = (
    "Lo siento, actualmente no tenemos cobertura en tu ciudad. "
    "Puedes comunicarte en el siguiente enlace: https://wa.me/573186925681"
)
SALES_CONTACT = {
    "whatsapp": "https://wa.me/573335655669",
    "description": "Linea de atención especializada para ventas.",
}


@dataclass(frozen=True)
class CoverageDirectory:
    cities_by_department: dict[str, tuple[str, ...]]

    def covered_cities(self) -> set[str]:
        return {
            remove_accents(city.lower())
            for department in ALLOWED_DEPARTMENTS
            for city in self.cities_by_department.get(department, ())
        }


def _repo_root() -> Path:
    return Path(__file__).resolve().parents[1]


def load_coverage_directory(path: str) -> CoverageDirectory:
    resolved = Path(path)
    if not resolved.is_absolute():
        resolved = _repo_root() / resolved
    try:
        with resolved.open("r", encoding="utf-8") as handle:
            raw = json.load(handle)
    except (OSError, ValueError) as exc:
        LOGGER.warning(
            "Coverage dataset unavailable; every city will be redirected",
            extra={"path": str(resolved)},
            exc_info=exc,
        )
        return CoverageDirectory(cities_by_department={})

    cities_by_department: dict[str, tuple[str, ...]] = {}
    if not isinstance(raw, list):
        return CoverageDirectory(cities_by_department=cities_by_department)
    for row in raw:
        if not isinstance(row, dict):
            continue
        department = row.get("departamento")
        cities = row.get("ciudades")
        if not isinstance(department, str) or not isinstance(cities, list):
            continue
        cities_by_department[department] = tuple(
            city for city in cities if isinstance(city, str)
        )
    return CoverageDirectory(cities_by_department=cities_by_department)


def remove_accents(value: str) -> str:
    decomposed = unicodedata.normalize("NFD", value)
    return "".join(char for char in decomposed if not unicodedata.combining(char))


def validate_city(city: str, directory: CoverageDirectory) -> str:
    normalized = remove_accents(city.strip().lower())
    if normalized and normalized in directory.covered_cities():
        return COVERAGE_CONFIRMED_MESSAGE
    return COVERAGE_REDIRECT_MESSAGE


def contact_customer_service() -> str:
    return json.dumps(SALES_CONTACT, ensure_ascii=False)


def build_frontline_tools(directory: CoverageDirectory) -> list[BaseTool]:
    @tool("contact_customer_service")
    def contact_tool() -> str:
        """Return the contact channel for sales and customer service."""
        LOGGER.info("tool_invoked %s", "contact_customer_service")
        return contact_customer_service()

    @tool("validate_city")
    def validate_city_tool(city: str) -> str:
        """Check whether the customer's city is inside the service area.

        Cities outside Antioquia, Córdoba, Chocó, Norte de Santander, Guainía,
        Boyacá or Arauca get a redirect to the matching contact line.
        """
        LOGGER.info("tool_invoked %s", "validate_city")
        return validate_city(city, directory)

    return [contact_tool, validate_city_tool]
