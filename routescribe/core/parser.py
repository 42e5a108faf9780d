"""
RouteScribe: PHP source parser using tree-sitter.
"""

from __future__ import annotations

import logging

import tree_sitter_php as tsphp
from tree_sitter import Language, Node, Parser, Tree

from routescribe.core.errors import SourceParseError

logger = logging.getLogger("routescribe.parser")

PHP_LANGUAGE = Language(tsphp.language_php())
# Grammar for sources without the opening <?php tag (snippets, tests)
PHP_ONLY_LANGUAGE = Language(tsphp.language_php_only())


def _first_error(node: Node) -> Node | None:
    """Depth-first search for the first ERROR or MISSING node."""
    if node.type == "ERROR" or node.is_missing:
        return node
    for child in node.children:
        if child.has_error or child.is_missing:
            found = _first_error(child)
            if found is not None:
                return found
    return None


class PhpParser:
    """Thin wrapper around tree-sitter for PHP source code."""

    def __init__(self) -> None:
        self._parser = Parser(PHP_LANGUAGE)
        self._snippet_parser = Parser(PHP_ONLY_LANGUAGE)

    def parse(self, code: str, unit: str = "<memory>") -> tuple[Tree, bytes]:
        """Parse PHP source and return (tree, source_bytes).

        Raises SourceParseError if the code has syntax errors.
        """
        source_bytes = code.encode("utf-8")
        parser = self._parser if "<?php" in code[:1024] else self._snippet_parser
        tree = parser.parse(source_bytes)
        if tree.root_node.has_error:
            bad = _first_error(tree.root_node)
            line = bad.start_point[0] + 1 if bad is not None else None
            logger.debug(f"Parse error in {unit} at line {line}")
            raise SourceParseError(unit, line)
        return tree, source_bytes
