"""Tree-sitter backed structural parsers.

Grammars are optional: each one that imports cleanly is registered in
``AVAILABLE_LANGUAGES`` and the heuristic parsers cover everything else.
"""

import logging
from abc import abstractmethod
from typing import Any, Dict, List, Optional, Set

from tree_sitter import Language, Parser

from .structural_parser import SemanticNode, StructuralParser, get_heuristic_parser

logger = logging.getLogger(__name__)

# Try to import language bindings
AVAILABLE_LANGUAGES = {}

try:
    import tree_sitter_python as tspython
    AVAILABLE_LANGUAGES['python'] = Language(tspython.language())
except ImportError:
    logger.debug("tree-sitter-python not installed")

try:
    import tree_sitter_javascript as tsjavascript
    AVAILABLE_LANGUAGES['javascript'] = Language(tsjavascript.language())
except ImportError:
    logger.debug("tree-sitter-javascript not installed")

try:
    import tree_sitter_java as tsjava
    AVAILABLE_LANGUAGES['java'] = Language(tsjava.language())
except ImportError:
    logger.debug("tree-sitter-java not installed")


# Map tree-sitter node types to structural node types
NODE_TYPE_MAP = {
    'function_definition': 'function',
    'function_declaration': 'function',
    'generator_function_declaration': 'function',
    'method_definition': 'method',
    'method_declaration': 'method',
    'constructor_declaration': 'method',
    'class_definition': 'class',
    'class_declaration': 'class',
    'interface_declaration': 'interface',
    'enum_declaration': 'enum',
    'annotation_type_declaration': 'interface',
}

CLASS_NODE_TYPES = {'class_definition', 'class_declaration', 'interface_declaration', 'enum_declaration'}


def is_language_available(language: str) -> bool:
    return language in AVAILABLE_LANGUAGES and language in TREE_SITTER_PARSERS


class TreeSitterParser(StructuralParser):
    """Base class for grammar-specific parsers."""

    def __init__(self, language: str):
        """Initialize the parser.

        Args:
            language: Language tag with a registered grammar

        Raises:
            ValueError: If the grammar is not installed
        """
        super().__init__(language)
        if language not in AVAILABLE_LANGUAGES:
            raise ValueError(f"Language {language} not available. Install tree-sitter-{language}")

        self.ts_language = AVAILABLE_LANGUAGES[language]
        self.parser = Parser(self.ts_language)
        self.splittable_node_types = self._get_splittable_node_types()
        self._heuristic = get_heuristic_parser(language)

    @abstractmethod
    def _get_splittable_node_types(self) -> Set[str]:
        pass

    @abstractmethod
    def extract_metadata(self, node: Any, source: bytes) -> Dict[str, Any]:
        """Extract metadata from a tree-sitter node.

        Args:
            node: Tree-sitter node
            source: Source code bytes

        Returns:
            Metadata dictionary, with ``name`` when one is found
        """
        pass

    def get_node_text(self, node: Any, source: bytes) -> str:
        return source[node.start_byte:node.end_byte].decode('utf-8', errors='replace')

    def get_name(self, node: Any, source: bytes) -> Optional[str]:
        name_node = node.child_by_field_name('name')
        if name_node is not None:
            return self.get_node_text(name_node, source)
        return None

    def has_constructs(self, lines: List[str]) -> bool:
        return bool(self.parse(lines))

    def is_boundary(self, line: str) -> bool:
        return self._heuristic.is_boundary(line)

    def declared_names(self, lines: List[str]) -> List[str]:
        return self._heuristic.declared_names(lines)

    def parse(self, lines: List[str]) -> List[SemanticNode]:
        """Parse source lines into nodes; nested members carry ``parent_name``."""
        source_bytes = bytes('\n'.join(lines), 'utf-8')
        tree = self.parser.parse(source_bytes)
        nodes: List[SemanticNode] = []

        def traverse(node, parent_name=None):
            if node.type in self.splittable_node_types:
                metadata = self.extract_metadata(node, source_bytes)
                name = metadata.get('name') or f"anonymous_{node.start_point[0]}"
                node_type = NODE_TYPE_MAP.get(metadata.get('definition_type', node.type), 'function')
                if parent_name and node_type == 'function':
                    node_type = 'method'
                nodes.append(SemanticNode(
                    type=node_type,
                    name=name,
                    start_line=node.start_point[0],
                    end_line=node.end_point[0],
                    indent=node.start_point[1],
                    parent_name=parent_name,
                    metadata=metadata,
                ))
                # Classes keep going so their members are found too
                if metadata.get('definition_type', node.type) in CLASS_NODE_TYPES:
                    container = node
                    if node.type == 'decorated_definition':
                        container = node.child_by_field_name('definition') or node
                    for child in container.children:
                        traverse(child, name)
                return

            for child in node.children:
                traverse(child, parent_name)

        traverse(tree.root_node)
        nodes.sort(key=lambda n: (n.start_line, n.end_line))
        return nodes


class PythonTreeSitterParser(TreeSitterParser):
    """Python parser using tree-sitter."""

    def __init__(self):
        super().__init__('python')

    def _get_splittable_node_types(self) -> Set[str]:
        return {
            'function_definition',
            'class_definition',
            'decorated_definition',
        }

    def extract_metadata(self, node: Any, source: bytes) -> Dict[str, Any]:
        metadata = {'node_type': node.type, 'definition_type': node.type}
        definition = node

        if node.type == 'decorated_definition':
            metadata['decorators'] = [
                self.get_node_text(child, source)
                for child in node.children if child.type == 'decorator'
            ]
            inner = node.child_by_field_name('definition')
            if inner is not None:
                definition = inner
                metadata['definition_type'] = inner.type

        name = self.get_name(definition, source)
        if name:
            metadata['name'] = name

        docstring = self._extract_docstring(definition, source)
        if docstring:
            metadata['docstring'] = docstring
        return metadata

    def _extract_docstring(self, node: Any, source: bytes) -> Optional[str]:
        body = node.child_by_field_name('body')
        if body is None or not body.children:
            return None

        first_statement = body.children[0]
        if first_statement.type != 'expression_statement':
            return None
        for child in first_statement.children:
            if child.type == 'string':
                text = self.get_node_text(child, source)
                if text.startswith(('"""', "'''")):
                    text = text[3:-3]
                elif text.startswith(('"', "'")):
                    text = text[1:-1]
                return text.strip()
        return None


class JavaScriptTreeSitterParser(TreeSitterParser):
    """JavaScript parser using tree-sitter."""

    def __init__(self):
        super().__init__('javascript')

    def _get_splittable_node_types(self) -> Set[str]:
        return {
            'function_declaration',
            'generator_function_declaration',
            'class_declaration',
            'method_definition',
        }

    def extract_metadata(self, node: Any, source: bytes) -> Dict[str, Any]:
        metadata = {'node_type': node.type}
        name = self.get_name(node, source)
        if name:
            metadata['name'] = name
        if node.children and self.get_node_text(node.children[0], source) == 'async':
            metadata['is_async'] = True
        if 'generator' in node.type:
            metadata['is_generator'] = True
        return metadata


class JavaTreeSitterParser(TreeSitterParser):
    """Java parser using tree-sitter."""

    MODIFIER_TYPES = {'public', 'private', 'protected', 'static', 'final', 'abstract', 'synchronized'}

    def __init__(self):
        super().__init__('java')

    def _get_splittable_node_types(self) -> Set[str]:
        return {
            'method_declaration',
            'constructor_declaration',
            'class_declaration',
            'interface_declaration',
            'enum_declaration',
            'annotation_type_declaration',
        }

    def extract_metadata(self, node: Any, source: bytes) -> Dict[str, Any]:
        metadata = {'node_type': node.type}
        name = self.get_name(node, source)
        if name:
            metadata['name'] = name

        modifiers = []
        for child in node.children:
            if child.type == 'modifiers':
                modifiers.extend(
                    self.get_node_text(modifier, source)
                    for modifier in child.children
                    if modifier.type in self.MODIFIER_TYPES
                )
        if modifiers:
            metadata['modifiers'] = modifiers
        return metadata


TREE_SITTER_PARSERS = {
    'python': PythonTreeSitterParser,
    'javascript': JavaScriptTreeSitterParser,
    'java': JavaTreeSitterParser,
}

_parser_cache: Dict[str, TreeSitterParser] = {}


def create_tree_sitter_parser(language: str) -> TreeSitterParser:
    """Return a cached parser for a language.

    Raises:
        ValueError: If no grammar is registered or installed for the language
    """
    if language not in TREE_SITTER_PARSERS:
        raise ValueError(f"No tree-sitter parser for {language}")
    if language not in _parser_cache:
        _parser_cache[language] = TREE_SITTER_PARSERS[language]()
    return _parser_cache[language]


def get_available_languages() -> List[str]:
    return [language for language in TREE_SITTER_PARSERS if language in AVAILABLE_LANGUAGES]
