"""
Source Unit: one parsed PHP file with its namespace, imports and class
declarations.

Name resolution follows PHP rules: a leading backslash is absolute, an
imported alias is expanded, anything else lives in the current namespace.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from tree_sitter import Node, Tree

from routescribe.core.parser import PhpParser
from routescribe.core.syntax import (
    CLASS_NAME_KINDS,
    UNKNOWN,
    NodeKind,
    argument_value,
    child_of_kind,
    find_all,
    kind_of,
    literal_value,
    node_text,
    pretty,
    string_value,
    unwrap,
)
from routescribe.models.analysis_models import MethodAttribute, ParameterInfo

BUILTIN_TYPES = frozenset(
    {
        "int", "integer", "float", "double", "string", "bool", "boolean", "array", "object",
        "mixed", "void", "null", "callable", "iterable", "never", "false", "true", "resource",
    }
)

_CLASS_KINDS = {
    NodeKind.CLASS: "class",
    NodeKind.INTERFACE: "interface",
    NodeKind.TRAIT: "trait",
    NodeKind.ENUM: "enum",
}

_shared_parser: PhpParser | None = None


def _parser() -> PhpParser:
    global _shared_parser
    if _shared_parser is None:
        _shared_parser = PhpParser()
    return _shared_parser


@dataclass
class MethodDecl:
    """A method declared in a class body."""

    name: str
    node: Node
    visibility: str = "public"
    is_static: bool = False
    is_abstract: bool = False
    parameters: list[ParameterInfo] = field(default_factory=list)
    return_type: str | None = None
    doc_comment: str | None = None
    attributes: list[MethodAttribute] = field(default_factory=list)

    @property
    def body(self) -> Node | None:
        return self.node.child_by_field_name("body")

    @property
    def is_public(self) -> bool:
        return self.visibility == "public"

    @property
    def is_magic(self) -> bool:
        return self.name.startswith("__")


@dataclass
class ClassDecl:
    """A class, interface, trait or enum declaration."""

    name: str
    fqcn: str
    kind: str
    node: Node
    unit: SourceUnit
    parent: str | None = None
    interfaces: list[str] = field(default_factory=list)
    traits: list[str] = field(default_factory=list)
    is_abstract: bool = False
    methods: dict[str, MethodDecl] = field(default_factory=dict)
    properties: dict[str, Node | None] = field(default_factory=dict)

    def method(self, name: str) -> MethodDecl | None:
        found = self.methods.get(name)
        if found is not None:
            return found
        lowered = name.lower()
        for method_name, decl in self.methods.items():
            if method_name.lower() == lowered:
                return decl
        return None

    def property_value(self, name: str) -> Node | None:
        return self.properties.get(name)


class SourceUnit:
    """A parsed PHP source file."""

    def __init__(self, tree: Tree, source: bytes, path: str = "<memory>") -> None:
        self.tree = tree
        self.source = source
        self.path = path
        self.namespace = ""
        self.uses: dict[str, str] = {}
        self.classes: list[ClassDecl] = []
        self._index_program(tree.root_node)

    @classmethod
    def parse(cls, code: str, path: str = "<memory>", parser: PhpParser | None = None) -> SourceUnit:
        """Parse code into a SourceUnit. Raises SourceParseError on syntax errors."""
        tree, source = (parser or _parser()).parse(code, path)
        return cls(tree, source, path)

    @property
    def root(self) -> Node:
        return self.tree.root_node

    # ── Lookup ──

    def primary_class(self) -> ClassDecl | None:
        """The first concrete class declared in the unit."""
        for decl in self.classes:
            if decl.kind == "class":
                return decl
        return None

    def find_class(self, name: str) -> ClassDecl | None:
        lowered = name.lstrip("\\").lower()
        for decl in self.classes:
            if decl.fqcn.lower() == lowered or decl.name.lower() == lowered:
                return decl
        return None

    def resolve_name(self, name: str, current: ClassDecl | None = None) -> str:
        """Resolve a class reference to its fully-qualified name (no leading backslash)."""
        name = name.strip()
        if not name:
            return name
        if name.startswith("\\"):
            return name[1:]
        lowered = name.lower()
        if lowered in ("self", "static"):
            return current.fqcn if current else name
        if lowered == "parent":
            return (current.parent if current and current.parent else name)
        if lowered in BUILTIN_TYPES:
            return name
        first, _, rest = name.partition("\\")
        imported = self.uses.get(first.lower())
        if imported:
            return f"{imported}\\{rest}" if rest else imported
        if lowered.startswith("namespace\\"):
            name = name[len("namespace\\"):]
        return f"{self.namespace}\\{name}" if self.namespace else name

    def class_reference(self, node: Node | None, current: ClassDecl | None = None) -> str | None:
        """FQCN named by `X::class` or a class-name string literal; None for anything else."""
        node = unwrap(node)
        kind = kind_of(node)
        if kind is NodeKind.CLASS_CONSTANT and node_text(node).replace(" ", "").lower().endswith("::class"):
            scope = node.named_children[0] if node.named_children else None
            if scope is None:
                return None
            return self.resolve_name(node_text(scope), current)
        if kind in CLASS_NAME_KINDS:
            return self.resolve_name(node_text(node), current)
        literal = string_value(node)
        if literal and ("\\" in literal or literal[:1].isupper()):
            return literal.lstrip("\\")
        return None

    def resolve_type(self, type_text: str | None, current: ClassDecl | None = None) -> str:
        """Resolve a declared type; builtin and union members are kept verbatim."""
        if not type_text:
            return "mixed"
        parts = []
        for part in type_text.replace("?", "").split("|"):
            part = part.strip().strip("()")
            if not part:
                continue
            parts.append(part if part.lower() in BUILTIN_TYPES else self.resolve_name(part, current))
        return "|".join(parts) if parts else "mixed"

    # ── Indexing ──

    def _index_program(self, root: Node) -> None:
        for child in root.named_children:
            kind = kind_of(child)
            if kind is NodeKind.NAMESPACE:
                name = child.child_by_field_name("name")
                self.namespace = node_text(name).strip("\\") if name is not None else ""
                body = child.child_by_field_name("body")
                if body is not None:
                    self._index_statements(body)
            else:
                self._index_statement(child)

    def _index_statements(self, container: Node) -> None:
        for child in container.named_children:
            self._index_statement(child)

    def _index_statement(self, node: Node) -> None:
        kind = kind_of(node)
        if kind is NodeKind.USE_DECLARATION:
            self._index_use(node)
        elif kind in _CLASS_KINDS:
            self.classes.append(self._build_class(node, _CLASS_KINDS[kind]))

    def _index_use(self, node: Node) -> None:
        for child in node.children:
            if child.type in ("function", "const"):
                return
        group = None
        prefix = ""
        for child in node.named_children:
            if child.type == "namespace_name":
                prefix = node_text(child).strip("\\")
            elif child.type == "namespace_use_group":
                group = child
        clauses = (group if group is not None else node).named_children
        for clause in clauses:
            if clause.type not in ("namespace_use_clause", "namespace_use_group_clause"):
                continue
            target, alias = self._use_clause_parts(clause)
            if not target:
                continue
            full = f"{prefix}\\{target}" if prefix and group is not None else target
            full = full.strip("\\")
            self.uses[(alias or full.rsplit("\\", 1)[-1]).lower()] = full

    @staticmethod
    def _use_clause_parts(clause: Node) -> tuple[str, str | None]:
        alias_node = clause.child_by_field_name("alias")
        names: list[Node] = []
        for child in clause.named_children:
            if child.type == "namespace_aliasing_clause":
                alias_node = child_of_kind(child, NodeKind.NAME)
            elif child.type in ("name", "qualified_name", "namespace_name"):
                names.append(child)
        if alias_node is None and len(names) >= 2:
            alias_node = names[-1]
            names = names[:-1]
        target = node_text(names[0]).strip("\\") if names else ""
        alias = node_text(alias_node) if alias_node is not None else None
        return target, alias

    def _build_class(self, node: Node, kind: str) -> ClassDecl:
        name = node_text(node.child_by_field_name("name"))
        fqcn = f"{self.namespace}\\{name}" if self.namespace else name
        decl = ClassDecl(name=name, fqcn=fqcn, kind=kind, node=node, unit=self)
        decl.is_abstract = any(
            c.type == "abstract_modifier" or (c.type == "abstract" and not c.is_named) for c in node.children
        )

        for child in node.named_children:
            if child.type == "base_clause":
                base = child_of_kind(child, NodeKind.NAME, NodeKind.QUALIFIED_NAME)
                if base is not None:
                    decl.parent = self.resolve_name(node_text(base))
            elif child.type == "class_interface_clause":
                decl.interfaces = [
                    self.resolve_name(node_text(c))
                    for c in child.named_children
                    if kind_of(c) in (NodeKind.NAME, NodeKind.QUALIFIED_NAME)
                ]

        body = node.child_by_field_name("body")
        if body is None:
            return decl
        for member in body.named_children:
            member_kind = kind_of(member)
            if member_kind is NodeKind.METHOD:
                method = self._build_method(member, decl)
                decl.methods[method.name] = method
            elif member_kind is NodeKind.PROPERTY:
                for element in member.named_children:
                    if element.type != "property_element":
                        continue
                    prop_name, value = self._property_parts(element)
                    if prop_name:
                        decl.properties[prop_name] = value
            elif member_kind is NodeKind.TRAIT_USE:
                decl.traits.extend(
                    self.resolve_name(node_text(c))
                    for c in member.named_children
                    if kind_of(c) in (NodeKind.NAME, NodeKind.QUALIFIED_NAME)
                )
        return decl

    @staticmethod
    def _property_parts(element: Node) -> tuple[str, Node | None]:
        name_node = child_of_kind(element, NodeKind.VARIABLE)
        name = node_text(name_node).lstrip("$")
        value = element.child_by_field_name("default_value")
        if value is None:
            for child in element.named_children:
                if child.type == "property_initializer":
                    value = child
                    break
        if value is None:
            others = [c for c in element.named_children if kind_of(c) is not NodeKind.VARIABLE]
            value = others[-1] if others else None
        if value is not None and value.type == "property_initializer":
            value = value.named_children[-1] if value.named_children else None
        return name, unwrap(value)

    def _build_method(self, node: Node, owner: ClassDecl) -> MethodDecl:
        name = node_text(node.child_by_field_name("name"))
        visibility = "public"
        is_static = False
        is_abstract = False
        for child in node.children:
            if child.type == "visibility_modifier":
                visibility = node_text(child).lower()
            elif child.type == "static_modifier":
                is_static = True
            elif child.type == "abstract_modifier":
                is_abstract = True

        return_type = node.child_by_field_name("return_type")
        method = MethodDecl(
            name=name,
            node=node,
            visibility=visibility,
            is_static=is_static,
            is_abstract=is_abstract,
            return_type=node_text(return_type) if return_type is not None else None,
            doc_comment=self._doc_comment(node),
            attributes=self._attributes(node, owner),
        )
        params = node.child_by_field_name("parameters")
        if params is not None:
            for param in params.named_children:
                if param.type in ("simple_parameter", "variadic_parameter", "property_promotion_parameter"):
                    method.parameters.append(self._build_parameter(param, owner))
        return method

    def _attributes(self, node: Node, owner: ClassDecl) -> list[MethodAttribute]:
        """`#[Name(args)]` attributes of a method; non-literal arguments kept as source text."""
        found: list[MethodAttribute] = []
        for group in node.named_children:
            if group.type != "attribute_list":
                continue
            for attribute in find_all(group, lambda n: n.type == "attribute"):
                name_node = child_of_kind(attribute, NodeKind.NAME, NodeKind.QUALIFIED_NAME)
                if name_node is None:
                    continue
                decl = MethodAttribute(name=self.resolve_name(node_text(name_node), owner))
                args = attribute.child_by_field_name("parameters") or child_of_kind(attribute, NodeKind.ARGUMENTS)
                for arg in args.named_children if args is not None else []:
                    if kind_of(arg) is not NodeKind.ARGUMENT:
                        continue
                    value_node = argument_value(arg)
                    value = literal_value(value_node)
                    if value is UNKNOWN:
                        value = pretty(value_node)
                    label = arg.child_by_field_name("name")
                    if label is not None:
                        decl.named_arguments[node_text(label)] = value
                    else:
                        decl.arguments.append(value)
                found.append(decl)
        return found

    def _build_parameter(self, node: Node, owner: ClassDecl) -> ParameterInfo:
        name_node = node.child_by_field_name("name") or child_of_kind(node, NodeKind.VARIABLE)
        type_node = node.child_by_field_name("type")
        default = node.child_by_field_name("default_value")
        is_variadic = node.type == "variadic_parameter"
        type_text = node_text(type_node) if type_node is not None else None
        return ParameterInfo(
            name=node_text(name_node).lstrip("$"),
            type=self.resolve_type(type_text, owner),
            default=node_text(default) if default is not None else None,
            is_optional=default is not None or is_variadic,
            is_variadic=is_variadic,
        )

    @staticmethod
    def _doc_comment(node: Node) -> str | None:
        previous = node.prev_named_sibling
        if previous is None or kind_of(previous) is not NodeKind.COMMENT:
            return None
        text = node_text(previous)
        return text if text.startswith("/**") else None
