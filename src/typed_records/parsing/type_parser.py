"""Parser for the record type definition DSL.

Example::

    Artist {
        name: string indexed
        favorite_color: -> Color
        tags: string{}
        plays: int[]
    }

Scalar fields name a scalar kind (``string``, ``int``, ``float``, ``bool``),
``T[]`` is an ordered list and ``T{}`` an unordered set of scalars,
``-> Type`` and ``-> Type[]`` are to-one and to-many relationships. Fields may
be separated by commas or newlines.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import ply.yacc as yacc

from typed_records.parsing.type_lexer import TypeLexer
from typed_records.types import (
    SCALAR_KIND_NAMES,
    Cardinality,
    FieldCategory,
    FieldDefinition,
    IndexKind,
    RecordTypeDefinition,
    TypeRegistry,
)


@dataclass
class TypeRef:
    """Reference to a scalar kind or a record type, possibly as a collection."""

    name: str
    category: FieldCategory
    cardinality: Cardinality | None = None


@dataclass
class FieldSpec:
    """Specification for a field before resolution."""

    name: str
    type_ref: TypeRef
    indexed: bool = False
    store_name: str | None = None


@dataclass
class TypeSpec:
    """Specification for a record type before resolution."""

    name: str
    fields: list[FieldSpec]


class TypeParser:
    """Parser for the record type definition DSL."""

    tokens = TypeLexer.tokens

    def __init__(self) -> None:
        self.lexer = TypeLexer()
        self.lexer.build()
        self.parser: yacc.LRParser = None  # type: ignore
        self.registry: TypeRegistry = TypeRegistry()
        self._specs: list[TypeSpec] = []

    def p_schema(self, p: yacc.YaccProduction) -> None:
        """schema : statement_list"""
        p[0] = p[1]

    def p_schema_empty(self, p: yacc.YaccProduction) -> None:
        """schema : """
        p[0] = []

    def p_statement_list_single(self, p: yacc.YaccProduction) -> None:
        """statement_list : type_def"""
        p[0] = [p[1]]

    def p_statement_list_multiple(self, p: yacc.YaccProduction) -> None:
        """statement_list : statement_list type_def"""
        p[0] = p[1] + [p[2]]

    def p_type_def(self, p: yacc.YaccProduction) -> None:
        """type_def : IDENTIFIER LBRACE field_list RBRACE
                    | IDENTIFIER LBRACE field_list COMMA RBRACE"""
        p[0] = TypeSpec(name=p[1], fields=p[3])

    def p_type_def_empty(self, p: yacc.YaccProduction) -> None:
        """type_def : IDENTIFIER LBRACE RBRACE"""
        p[0] = TypeSpec(name=p[1], fields=[])

    def p_field_list_single(self, p: yacc.YaccProduction) -> None:
        """field_list : field"""
        p[0] = [p[1]]

    def p_field_list_multiple(self, p: yacc.YaccProduction) -> None:
        """field_list : field_list COMMA field
                      | field_list field"""
        p[0] = p[1] + [p[len(p) - 1]]

    def p_field(self, p: yacc.YaccProduction) -> None:
        """field : IDENTIFIER COLON type_ref index_opt store_name_opt"""
        p[0] = FieldSpec(name=p[1], type_ref=p[3], indexed=p[4], store_name=p[5])

    def p_index_opt(self, p: yacc.YaccProduction) -> None:
        """index_opt : INDEXED
                     | """
        p[0] = len(p) > 1

    def p_store_name_opt(self, p: yacc.YaccProduction) -> None:
        """store_name_opt : AS STRING
                          | """
        p[0] = p[2] if len(p) > 1 else None

    def p_type_ref_scalar(self, p: yacc.YaccProduction) -> None:
        """type_ref : IDENTIFIER"""
        p[0] = TypeRef(name=p[1], category=FieldCategory.SCALAR)

    def p_type_ref_list(self, p: yacc.YaccProduction) -> None:
        """type_ref : IDENTIFIER LBRACKET RBRACKET"""
        p[0] = TypeRef(name=p[1], category=FieldCategory.LIST)

    def p_type_ref_set(self, p: yacc.YaccProduction) -> None:
        """type_ref : IDENTIFIER LBRACE RBRACE"""
        p[0] = TypeRef(name=p[1], category=FieldCategory.SET)

    def p_type_ref_to_one(self, p: yacc.YaccProduction) -> None:
        """type_ref : ARROW IDENTIFIER"""
        p[0] = TypeRef(name=p[2], category=FieldCategory.RELATIONSHIP, cardinality=Cardinality.TO_ONE)

    def p_type_ref_to_many(self, p: yacc.YaccProduction) -> None:
        """type_ref : ARROW IDENTIFIER LBRACKET RBRACKET"""
        p[0] = TypeRef(name=p[2], category=FieldCategory.RELATIONSHIP, cardinality=Cardinality.TO_MANY)

    def p_error(self, p: yacc.YaccProduction) -> None:
        if p:
            raise SyntaxError(f"Syntax error at '{p.value}' (line {p.lineno})")
        else:
            raise SyntaxError("Syntax error at end of input")

    def build(self, **kwargs: Any) -> None:
        """Build the parser."""
        self.parser = yacc.yacc(module=self, start="schema", **kwargs)

    def parse(self, data: str, registry: TypeRegistry | None = None) -> TypeRegistry:
        """Parse type definitions and return a populated TypeRegistry.

        Args:
            data: DSL source.
            registry: Existing registry to extend; relationships may target
                types it already holds.
        """
        if self.parser is None:
            self.build(debug=False, write_tables=False)

        self.registry = registry if registry is not None else TypeRegistry()
        self.lexer.lexer.lineno = 1

        specs = self.parser.parse(data, lexer=self.lexer.lexer)
        self._specs = specs or []

        self._resolve_specs()

        return self.registry

    def _resolve_field(self, type_name: str, spec: FieldSpec) -> FieldDefinition:
        """Resolve a field spec against scalar kinds and declared types."""
        ref = spec.type_ref
        store_name = spec.store_name or spec.name
        if ref.category is FieldCategory.RELATIONSHIP:
            if spec.indexed:
                raise ValueError(f"{type_name}.{spec.name}: relationships cannot be indexed")
            if ref.name not in self.registry:
                raise ValueError(f"{type_name}.{spec.name}: unknown record type '{ref.name}'")
            return FieldDefinition(
                name=spec.name,
                category=ref.category,
                target=ref.name,
                cardinality=ref.cardinality,
                store_name=store_name,
            )

        kind = SCALAR_KIND_NAMES.get(ref.name)
        if kind is None:
            raise ValueError(f"{type_name}.{spec.name}: unknown scalar type '{ref.name}'")
        if spec.indexed and ref.category is not FieldCategory.SCALAR:
            raise ValueError(f"{type_name}.{spec.name}: only scalar fields can be indexed")
        return FieldDefinition(
            name=spec.name,
            category=ref.category,
            kind=kind,
            index=IndexKind.for_scalar(kind) if spec.indexed else None,
            store_name=store_name,
        )

    def _resolve_specs(self) -> None:
        """Resolve all specs into record types using two-phase resolution.

        Phase 1: Pre-register stubs for every declared type so that
        self-referential and mutually referential relationships resolve.
        Phase 2: Populate the stubs and generate their record classes.
        """
        seen: set[str] = set()
        for spec in self._specs:
            if spec.name in seen:
                raise ValueError(f"Type '{spec.name}' is already defined")
            seen.add(spec.name)
            self.registry.register_stub(spec.name)

        for spec in self._specs:
            fields: list[FieldDefinition] = []
            names: set[str] = set()
            for field_spec in spec.fields:
                if field_spec.name in names:
                    raise ValueError(f"{spec.name}: duplicate field '{field_spec.name}'")
                names.add(field_spec.name)
                fields.append(self._resolve_field(spec.name, field_spec))
            # Mutate the existing stub in-place
            stub: RecordTypeDefinition = self.registry.get_or_raise(spec.name)
            stub.fields = fields
            self.registry.register(stub)
