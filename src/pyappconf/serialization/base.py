from __future__ import annotations

from abc import ABC, abstractmethod

from .tree import Tree


class BaseFormat(ABC):
    """Abstract structured-text format."""

    name: str = ""
    suffixes: tuple[str, ...] = ()

    @abstractmethod
    def dumps(self, tree: Tree, root_name: str) -> str:
        pass

    @abstractmethod
    def loads(self, text: str) -> Tree:
        pass
