"""Unit tests for the heuristic structural parsers."""

import logging
import sys

import pytest

from chunking.models import split_lines
from chunking.structural_parser import (
    BlockStructuralParser,
    BraceStructuralParser,
    IndentationStructuralParser,
    SemanticNode,
    get_heuristic_parser,
    get_structural_parser,
    last_code_line,
    structural_density,
)
from tests.fixtures.sample_code import (
    SAMPLE_JAVA_NESTED,
    SAMPLE_JS_CALLS,
    SAMPLE_PYTHON_MODULE,
    plain_text,
)


class TestSemanticNode:
    def test_line_count_and_text(self):
        lines = ['a', 'b', 'c', 'd']
        node = SemanticNode('function', 'f', 1, 2)
        assert node.line_count == 2
        assert node.text(lines) == 'b\nc'

    def test_last_code_line_skips_trailing_blanks(self):
        lines = ['def f():', '    pass', '', '   ']
        assert last_code_line(lines, 0, 3) == 1
        assert last_code_line(['', ''], 0, 1) == 0


class TestBraceStructuralParser:
    """Test cases for brace-delimited languages."""

    def test_top_level_functions(self):
        parser = BraceStructuralParser('javascript')
        nodes = parser.parse(split_lines(SAMPLE_JS_CALLS))

        assert [(n.name, n.start_line, n.end_line) for n in nodes] == [
            ('helper', 0, 2),
            ('main', 4, 6),
        ]
        assert all(n.type == 'function' for n in nodes)

    def test_nested_class_stays_inside_parent(self):
        parser = BraceStructuralParser('java')
        nodes = parser.parse(split_lines(SAMPLE_JAVA_NESTED))

        assert len(nodes) == 1
        assert nodes[0].name == 'Outer'
        assert nodes[0].type == 'class'
        assert (nodes[0].start_line, nodes[0].end_line) == (0, 8)

    def test_annotation_included_in_range(self):
        lines = ['@Service', 'public class Billing {', '}']
        nodes = BraceStructuralParser('java').parse(lines)

        assert len(nodes) == 1
        assert nodes[0].name == 'Billing'
        assert nodes[0].start_line == 0
        assert nodes[0].end_line == 2

    def test_arrow_function_declaration(self):
        lines = ['const total = (items) => {', '  return items.length;', '};']
        nodes = BraceStructuralParser('javascript').parse(lines)
        assert [n.name for n in nodes] == ['total']

    def test_typescript_interface(self):
        lines = ['export interface Shape {', '  area(): number;', '}']
        nodes = BraceStructuralParser('typescript').parse(lines)
        assert nodes[0].type == 'interface'
        assert nodes[0].name == 'Shape'

    def test_declared_names_include_methods(self):
        parser = BraceStructuralParser('java')
        names = parser.declared_names(split_lines(SAMPLE_JAVA_NESTED))
        assert names == ['Outer', 'Inner', 'run']

    def test_has_constructs(self):
        parser = BraceStructuralParser('java')
        assert parser.has_constructs(split_lines(SAMPLE_JAVA_NESTED))
        assert not parser.has_constructs(['int x = 1;', 'x++;'])

    def test_is_boundary(self):
        parser = BraceStructuralParser('javascript')
        assert parser.is_boundary('')
        assert parser.is_boundary('// --- helpers ---')
        assert parser.is_boundary('export const x = 1;')
        assert not parser.is_boundary('  return x;')


class TestIndentationStructuralParser:
    """Test cases for Python."""

    @pytest.fixture
    def parser(self):
        return IndentationStructuralParser('python')

    def test_definitions(self, parser):
        nodes = parser.parse(split_lines(SAMPLE_PYTHON_MODULE))
        names = [n.name for n in nodes]

        assert names == ['OrderRepository', '__init__', 'add', 'load_orders', 'process_orders']
        load_orders = nodes[3]
        assert load_orders.type == 'function'
        assert (load_orders.start_line, load_orders.end_line) == (18, 23)
        assert nodes[-1].end_line == 29

    def test_decorator_starts_node(self, parser):
        lines = ["@app.route('/')", 'def index():', "    return 'hi'"]
        nodes = parser.parse(lines)
        assert len(nodes) == 1
        assert nodes[0].start_line == 0
        assert nodes[0].end_line == 2

    def test_declared_names(self, parser):
        names = parser.declared_names(split_lines(SAMPLE_PYTHON_MODULE))
        assert 'OrderRepository' in names
        assert 'process_orders' in names

    def test_has_constructs(self, parser):
        assert parser.has_constructs(['def f():', '    pass'])
        assert not parser.has_constructs(['x = 1', 'print(x)'])

    def test_docstring_is_boundary(self, parser):
        assert parser.is_boundary('    """Docstring."""')
        assert parser.is_boundary('from os import path')
        assert not parser.is_boundary('    x = 1')


class TestBlockStructuralParser:
    def test_fixed_blocks(self):
        lines = split_lines(plain_text(120))
        nodes = BlockStructuralParser('text').parse(lines)
        assert [(n.start_line, n.end_line) for n in nodes] == [(0, 49), (50, 99), (100, 119)]
        assert all(n.type == 'block' for n in nodes)

    def test_structural_density(self):
        assert structural_density([]) == 0.0
        assert structural_density(['import os', 'x = 1']) == 0.5


class TestParserSelection:
    def test_heuristic_parsers(self):
        assert isinstance(get_heuristic_parser('python'), IndentationStructuralParser)
        assert isinstance(get_heuristic_parser('rust'), BraceStructuralParser)
        assert isinstance(get_heuristic_parser('markdown'), BlockStructuralParser)

    def test_structural_parser_without_ast(self):
        assert isinstance(get_structural_parser('java', prefer_ast=False), BraceStructuralParser)

    def test_structural_parser_unknown_language_with_ast(self):
        assert isinstance(get_structural_parser('ruby', prefer_ast=True), BlockStructuralParser)

    def test_missing_tree_sitter_backend_falls_back(self, monkeypatch, caplog):
        monkeypatch.setitem(sys.modules, 'chunking.tree_sitter', None)

        with caplog.at_level(logging.WARNING, logger='chunking.structural_parser'):
            parser = get_structural_parser('python', prefer_ast=True)

        assert isinstance(parser, IndentationStructuralParser)
        assert 'Tree-sitter backend unavailable' in caplog.text
