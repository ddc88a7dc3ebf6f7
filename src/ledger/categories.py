"""
Category Catalog

Known categories offered when entering a record. Entries are not
validated against this list - a category deleted here stays on the
entries that use it.
"""

from typing import Union

from src.models.entry import Category, EntryType
from src.services.storage.interface import KeyValueStoreInterface


CATEGORIES_KEY = "expense_tracker_categories"

FALLBACK_ICON = "📦"

DEFAULT_EXPENSE_CATEGORIES = [
    ("🍽️", "飲食"),
    ("🚗", "交通"),
    ("🛒", "購物"),
    ("🎮", "娛樂"),
    ("🏠", "居住"),
    ("💊", "醫療"),
    ("📚", "教育"),
    ("👔", "服飾"),
    ("📱", "通訊"),
    ("💡", "水電"),
    ("🎁", "禮物"),
    ("📦", "其他"),
]

DEFAULT_INCOME_CATEGORIES = [
    ("💼", "薪資"),
    ("💰", "獎金"),
    ("📈", "投資"),
    ("🏦", "利息"),
    ("🎯", "副業"),
    ("📦", "其他收入"),
]


def default_categories() -> list[Category]:
    return [
        Category(icon=icon, name=name, type=EntryType.EXPENSE)
        for icon, name in DEFAULT_EXPENSE_CATEGORIES
    ] + [
        Category(icon=icon, name=name, type=EntryType.INCOME)
        for icon, name in DEFAULT_INCOME_CATEGORIES
    ]


class CategoryCatalog:
    """Persisted category list, seeded with defaults on first use."""

    def __init__(self, kv: KeyValueStoreInterface):
        self._kv = kv

    def all(self) -> list[Category]:
        saved = self._kv.get(CATEGORIES_KEY, None)
        if saved is not None:
            return [Category.model_validate(c) for c in saved]

        defaults = default_categories()
        self._save(defaults)
        return defaults

    def _save(self, categories: list[Category]) -> None:
        self._kv.set(CATEGORIES_KEY, [c.model_dump(mode="json") for c in categories])

    def by_type(self, type: Union[EntryType, str]) -> list[Category]:
        wanted = EntryType(type)
        return [c for c in self.all() if c.type == wanted]

    def add(self, icon: str, name: str, type: Union[EntryType, str]) -> bool:
        """Add a category. Returns False if the name already exists for that type."""
        new = Category(icon=icon, name=name, type=EntryType(type))
        categories = self.all()
        if any(c.name == new.name and c.type == new.type for c in categories):
            return False
        categories.append(new)
        self._save(categories)
        return True

    def remove(self, name: str, type: Union[EntryType, str]) -> None:
        wanted = EntryType(type)
        self._save([
            c for c in self.all()
            if not (c.name == name and c.type == wanted)
        ])

    def icon_for(self, name: str) -> str:
        for category in self.all():
            if category.name == name:
                return category.icon
        return FALLBACK_ICON
