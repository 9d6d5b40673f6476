from __future__ import annotations

import yaml

from ..errors import SerializationError
from . import register_format
from .base import BaseFormat
from .tree import Tree


@register_format
class YamlFormat(BaseFormat):
    """YAML mapping of member names to text nodes."""

    name = "yaml"
    suffixes = (".yaml", ".yml")

    def dumps(self, tree: Tree, root_name: str) -> str:
        return yaml.safe_dump(tree, sort_keys=False, allow_unicode=True)

    def loads(self, text: str) -> Tree:
        if text.strip() == "":
            return {}
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise SerializationError(str(exc)) from exc
        if not isinstance(data, dict):
            raise SerializationError("Root of a YAML document must be a mapping")
        return data
