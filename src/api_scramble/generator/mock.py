"""Mock generator that synthesizes plausible JSON values for AnalyzedTypes.

Values come from Faker. Pass a seeded Faker (or ``seed=``) to make array
lengths, optional-field inclusion and union choices reproducible.
"""

import ast
from typing import Any

from faker import Faker

from api_scramble.scanner.base import AnalyzedType

NUMERIC_HINTS = ("int", "float", "decimal", "number")


class MockGenerator:
    """Generates mock data from analyzed types and property-name hints."""

    def __init__(self, faker: Faker | None = None, locale: str = "en_US", seed: int | None = None):
        self.faker = faker or Faker(locale)
        if seed is not None:
            self.faker.seed_instance(seed)

    def generate(self, analyzed: AnalyzedType, name_hint: str | None = None) -> Any:
        """Return a JSON-compatible mock value for ``analyzed``."""
        if analyzed.items is not None:
            count = self.faker.random_int(min=1, max=5)
            return [self.generate(analyzed.items, name_hint) for _ in range(count)]

        if analyzed.union_types is not None:
            member = self.faker.random_element(analyzed.union_types)
            return self._mock_for_type(member)

        if analyzed.properties is not None:
            obj = {}
            for prop in analyzed.properties:
                if not prop.type.is_optional or self.faker.pybool():
                    obj[prop.name] = self.generate(prop.type, prop.name)
            return obj

        if name_hint:
            return self._mock_for_name(name_hint.lower(), analyzed.type)
        return self._mock_for_type(analyzed.type)

    def _mock_for_name(self, name: str, type_name: str) -> Any:
        numeric = _is_numeric(type_name)
        fake = self.faker

        if "email" in name:
            return fake.email()
        if "name" in name:
            return fake.name()
        if any(k in name for k in ("phone", "mobile", "tel")):
            return fake.phone_number()
        if "address" in name or "street" in name:
            return fake.street_address()
        if "city" in name:
            return fake.city()
        if "country" in name:
            return fake.country()
        if "url" in name or "website" in name:
            return fake.url()
        if "id" in name and numeric:
            return fake.random_int(min=1, max=1000)
        if "age" in name and numeric:
            return fake.random_int(min=18, max=80)
        if any(k in name for k in ("date", "created", "updated")):
            return fake.date_time_this_month().isoformat()
        if "description" in name or "bio" in name:
            return " ".join(fake.sentences())
        if "title" in name:
            return " ".join(fake.words(3))

        return self._mock_for_type(type_name)

    def _mock_for_type(self, type_name: str) -> Any:
        literal = literal_value(type_name)
        if literal is not None:
            return literal

        lower = type_name.lower()
        fake = self.faker

        if lower == "none":
            return None
        if "str" in lower:
            return " ".join(fake.words())
        if "bool" in lower:
            return fake.pybool()
        if _is_numeric(lower):
            return fake.random_int(min=1, max=100)
        if "date" in lower or "time" in lower:
            return fake.date_time_this_month().isoformat()
        if "uuid" in lower:
            return fake.uuid4()

        return fake.word()


def _is_numeric(type_name: str) -> bool:
    lower = type_name.lower()
    return any(k in lower for k in NUMERIC_HINTS)


def literal_value(type_name: str) -> str | int | float | bool | None:
    """``'admin'`` -> ``admin``, ``3`` -> ``3``; None for non-literals."""
    try:
        value = ast.literal_eval(type_name)
    except (ValueError, TypeError, SyntaxError):
        return None
    if isinstance(value, (str, int, float, bool)):
        return value
    return None
