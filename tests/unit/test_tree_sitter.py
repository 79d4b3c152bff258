"""Unit tests for the tree-sitter backed structural parsers."""

from unittest import TestCase

import pytest

from chunking.models import split_lines
from chunking.tree_sitter import (
    JavaScriptTreeSitterParser,
    JavaTreeSitterParser,
    PythonTreeSitterParser,
    create_tree_sitter_parser,
    get_available_languages,
    is_language_available,
)
from tests.fixtures.sample_code import SAMPLE_JAVA_NESTED, SAMPLE_JS_CALLS, SAMPLE_PYTHON_MODULE


class TestPythonTreeSitterParser(TestCase):
    """Test Python parsing with tree-sitter."""

    def setUp(self):
        try:
            self.parser = PythonTreeSitterParser()
        except ValueError:
            self.skipTest("tree-sitter-python not installed")

    def test_functions_and_methods(self):
        nodes = self.parser.parse(split_lines(SAMPLE_PYTHON_MODULE))

        names = [n.name for n in nodes]
        assert names == ['OrderRepository', '__init__', 'add', 'load_orders', 'process_orders']

        by_name = {n.name: n for n in nodes}
        assert by_name['OrderRepository'].type == 'class'
        assert by_name['add'].type == 'method'
        assert by_name['add'].parent_name == 'OrderRepository'
        assert by_name['load_orders'].type == 'function'
        assert by_name['load_orders'].parent_name is None
        assert by_name['OrderRepository'].start_line == 7

    def test_docstring_metadata(self):
        nodes = self.parser.parse(split_lines(SAMPLE_PYTHON_MODULE))
        load_orders = next(n for n in nodes if n.name == 'load_orders')
        assert load_orders.metadata.get('docstring') == 'Read one order id per line.'

    def test_decorated_definition(self):
        code = '''@decorator1
@decorator2
def decorated_function():
    return "decorated"
'''
        nodes = self.parser.parse(split_lines(code))

        assert len(nodes) == 1
        assert nodes[0].name == 'decorated_function'
        assert nodes[0].start_line == 0
        assert len(nodes[0].metadata['decorators']) == 2

    def test_has_constructs(self):
        assert self.parser.has_constructs(['def f():', '    return 1'])
        assert not self.parser.has_constructs(['x = 1'])


class TestJavaScriptTreeSitterParser(TestCase):
    """Test JavaScript parsing with tree-sitter."""

    def setUp(self):
        try:
            self.parser = JavaScriptTreeSitterParser()
        except ValueError:
            self.skipTest("tree-sitter-javascript not installed")

    def test_function_declarations(self):
        nodes = self.parser.parse(split_lines(SAMPLE_JS_CALLS))
        assert [(n.name, n.start_line, n.end_line) for n in nodes] == [
            ('helper', 0, 2),
            ('main', 4, 6),
        ]

    def test_class_methods(self):
        code = '''class Counter {
  increment() {
    this.count++;
  }
}'''
        nodes = self.parser.parse(split_lines(code))
        assert [n.name for n in nodes] == ['Counter', 'increment']
        assert nodes[1].type == 'method'
        assert nodes[1].parent_name == 'Counter'


class TestJavaTreeSitterParser(TestCase):
    """Test Java parsing with tree-sitter."""

    def setUp(self):
        try:
            self.parser = JavaTreeSitterParser()
        except ValueError:
            self.skipTest("tree-sitter-java not installed")

    def test_nested_classes(self):
        nodes = self.parser.parse(split_lines(SAMPLE_JAVA_NESTED))

        assert [n.name for n in nodes] == ['Outer', 'Inner', 'run']
        outer, inner, run = nodes
        assert outer.metadata.get('modifiers') == ['public']
        assert inner.parent_name == 'Outer'
        assert run.parent_name == 'Inner'
        assert run.type == 'method'


class TestParserRegistry:
    def test_unknown_language_raises(self):
        with pytest.raises(ValueError):
            create_tree_sitter_parser('cobol')

    def test_available_languages_are_supported(self):
        for language in get_available_languages():
            assert is_language_available(language)
            assert create_tree_sitter_parser(language) is create_tree_sitter_parser(language)
