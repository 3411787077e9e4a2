"""
Fixed classification dimensions of a help request.
Values are part of the external contract (callback payloads, stored rows).
"""
from enum import Enum
from typing import Optional


class Category(str, Enum):
    """Help categories"""

    CHILDREN = "children"
    ELDERLY = "elderly"
    DISABLED = "disabled"
    ANIMALS = "animals"
    NATURE = "nature"

    @property
    def label(self) -> str:
        return CATEGORY_LABELS[self]

    @property
    def description(self) -> str:
        return CATEGORY_DESCRIPTIONS[self]

    @classmethod
    def parse(cls, value) -> Optional["Category"]:
        """Returns the matching category or None for unknown values"""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


class Region(str, Enum):
    """Moscow administrative districts"""

    CAO = "CAO"
    SAO = "SAO"
    SVAO = "SVAO"
    VAO = "VAO"
    YUVAO = "YUVAO"
    YUAO = "YUAO"
    YUZAO = "YUZAO"
    ZAO = "ZAO"
    SZAO = "SZAO"
    ZELAO = "ZELAO"

    @property
    def short_label(self) -> str:
        return REGION_SHORT_LABELS[self]

    @property
    def label(self) -> str:
        return REGION_LABELS[self]

    @classmethod
    def parse(cls, value) -> Optional["Region"]:
        """
        Returns the matching region or None for unknown values.
        Accepts both the code ("CAO") and the Cyrillic short form ("ЦАО")
        found in legacy data files.
        """
        if isinstance(value, cls):
            return value
        if value is None:
            return None
        try:
            return cls(value)
        except ValueError:
            pass
        for region, short in REGION_SHORT_LABELS.items():
            if short == value:
                return region
        return None


CATEGORY_LABELS = {
    Category.CHILDREN: "Детям",
    Category.ELDERLY: "Пожилым людям",
    Category.DISABLED: "Людям с ОВЗ",
    Category.ANIMALS: "Животным",
    Category.NATURE: "Природе",
}

CATEGORY_DESCRIPTIONS = {
    Category.CHILDREN: "помощь детским домам, многодетным семьям",
    Category.ELDERLY: "поддержка пожилых и одиноких людей",
    Category.DISABLED: "помощь людям с ограниченными возможностями",
    Category.ANIMALS: "забота о бездомных животных, приютах",
    Category.NATURE: "экологические проекты, озеленение",
}

REGION_SHORT_LABELS = {
    Region.CAO: "ЦАО",
    Region.SAO: "САО",
    Region.SVAO: "СВАО",
    Region.VAO: "ВАО",
    Region.YUVAO: "ЮВАО",
    Region.YUAO: "ЮАО",
    Region.YUZAO: "ЮЗАО",
    Region.ZAO: "ЗАО",
    Region.SZAO: "СЗАО",
    Region.ZELAO: "ЗелАО",
}

REGION_LABELS = {
    Region.CAO: "ЦАО (Центральный)",
    Region.SAO: "САО (Северный)",
    Region.SVAO: "СВАО (Северо-Восточный)",
    Region.VAO: "ВАО (Восточный)",
    Region.YUVAO: "ЮВАО (Юго-Восточный)",
    Region.YUAO: "ЮАО (Южный)",
    Region.YUZAO: "ЮЗАО (Юго-Западный)",
    Region.ZAO: "ЗАО (Западный)",
    Region.SZAO: "СЗАО (Северо-Западный)",
    Region.ZELAO: "ЗелАО (Зеленоградский)",
}
