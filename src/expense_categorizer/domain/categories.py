from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType

from expense_categorizer.core.errors import ConfigurationError
from expense_categorizer.models import Category


class CategoryDirectory(Mapping[str, str]):
    """Immutable name -> id mapping of the live category set.

    Built once per engine initialization and handed to the classifier; the
    reverse ``name_for`` lookup serves reports and the history build.
    """

    def __init__(self, categories: Iterable[Category]):
        ids_by_name: dict[str, str] = {}
        names_by_id: dict[str, str] = {}
        for category in categories:
            if category.name in ids_by_name:
                raise ConfigurationError(f"Duplicate category name in store: '{category.name}'")
            if category.id in names_by_id:
                raise ConfigurationError(f"Duplicate category id in store: '{category.id}'")
            ids_by_name[category.name] = category.id
            names_by_id[category.id] = category.name
        self._ids = MappingProxyType(ids_by_name)
        self._names = MappingProxyType(names_by_id)

    def __getitem__(self, name: str) -> str:
        return self._ids[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._ids)

    def __len__(self) -> int:
        return len(self._ids)

    def id_for(self, name: str) -> str | None:
        return self._ids.get(name)

    def name_for(self, category_id: str | None) -> str | None:
        if category_id is None:
            return None
        return self._names.get(category_id)

    @property
    def names_by_id(self) -> Mapping[str, str]:
        return self._names
