"""Heuristic structural parsers, one per language family.

A structural parser turns source lines into a flat list of ``SemanticNode``
records (functions, classes, interfaces, blocks). Brace-delimited languages
are tracked with a brace depth counter, Python with indentation, and
anything else is cut into fixed blocks. ``get_structural_parser`` may hand
back a tree-sitter backed parser instead when the grammar is installed.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Pattern, Tuple

from .code_metrics import is_comment_line, leading_indent

logger = logging.getLogger(__name__)


@dataclass
class SemanticNode:
    """A declaration found in source, 0-based inclusive line range."""

    type: str
    name: str
    start_line: int
    end_line: int
    indent: int = 0
    parent_name: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def line_count(self) -> int:
        return self.end_line - self.start_line + 1

    def text(self, lines: List[str]) -> str:
        return '\n'.join(lines[self.start_line:self.end_line + 1])


def last_code_line(lines: List[str], start: int, end: int) -> int:
    """Last non-blank line in ``[start, end]``, never before ``start``."""
    while end > start and not lines[end].strip():
        end -= 1
    return max(start, end)


class StructuralParser(ABC):
    """Finds declarations in source lines for one language."""

    def __init__(self, language: str):
        self.language = language

    @abstractmethod
    def parse(self, lines: List[str]) -> List[SemanticNode]:
        """Extract semantic nodes.

        Args:
            lines: Source split on newlines

        Returns:
            Nodes ordered by start line
        """
        pass

    @abstractmethod
    def has_constructs(self, lines: List[str]) -> bool:
        """Whether the source holds anything this parser recognises."""
        pass

    def is_boundary(self, line: str) -> bool:
        """Whether a line is a natural place to split a large node."""
        trimmed = line.strip()
        return not trimmed or trimmed.startswith(('//', '#', '/*'))

    def declared_names(self, lines: List[str]) -> List[str]:
        """Names declared anywhere in the lines, nested ones included."""
        names = []
        for line in lines:
            match = GENERIC_DECLARATION.search(line)
            if match and match.group(1) not in names:
                names.append(match.group(1))
        return names


GENERIC_DECLARATION = re.compile(
    r'\b(?:function|def|class|func|fn|fun|sub|module|interface|struct)\s+([A-Za-z_$][\w$]*)'
)

_STRUCTURE_MARKERS = (
    re.compile(r'\{.*\}'),
    re.compile(r'^\s*/\*\*'),
    re.compile(r'^\s*#'),
    re.compile(r'^\s*import\s+'),
    re.compile(r'^\s*from\s+.*import'),
)


def structural_density(lines: List[str]) -> float:
    """Share of lines carrying a generic structure marker."""
    if not lines:
        return 0.0
    marked = sum(1 for line in lines if any(p.search(line) for p in _STRUCTURE_MARKERS))
    return marked / len(lines)


_JS_ID = r'[A-Za-z_$][\w$]*'
_JS_DECLARATIONS = [
    (re.compile(rf'^\s*(?:export\s+)?(?:default\s+)?(?:async\s+)?function\s*\*?\s*({_JS_ID})'), 'function'),
    (re.compile(rf'^\s*(?:export\s+)?(?:const|let|var)\s+({_JS_ID})\s*=\s*(?:async\s+)?(?:\([^)]*\)|{_JS_ID})\s*=>'), 'function'),
    (re.compile(rf'^\s*(?:export\s+)?(?:default\s+)?(?:abstract\s+)?class\s+({_JS_ID})'), 'class'),
]
_TS_DECLARATIONS = _JS_DECLARATIONS + [
    (re.compile(rf'^\s*(?:export\s+)?interface\s+({_JS_ID})'), 'interface'),
    (re.compile(rf'^\s*(?:export\s+)?type\s+({_JS_ID})\s*(?:<[^>]*>)?\s*='), 'type'),
    (re.compile(rf'^\s*(?:export\s+)?(?:const\s+)?enum\s+({_JS_ID})'), 'enum'),
]
_JVM_MODIFIERS = r'(?:(?:public|private|protected|internal|abstract|final|static|sealed|partial|data|open|inner|readonly)\s+)*'
_JAVA_DECLARATIONS = [
    (re.compile(rf'^\s*{_JVM_MODIFIERS}class\s+(\w+)'), 'class'),
    (re.compile(rf'^\s*{_JVM_MODIFIERS}(?:@)?interface\s+(\w+)'), 'interface'),
    (re.compile(rf'^\s*{_JVM_MODIFIERS}enum\s+(\w+)'), 'enum'),
    (re.compile(rf'^\s*{_JVM_MODIFIERS}record\s+(\w+)'), 'class'),
]
_CSHARP_DECLARATIONS = _JAVA_DECLARATIONS + [
    (re.compile(rf'^\s*{_JVM_MODIFIERS}struct\s+(\w+)'), 'class'),
]
_KOTLIN_DECLARATIONS = _JAVA_DECLARATIONS + [
    (re.compile(rf'^\s*{_JVM_MODIFIERS}object\s+(\w+)'), 'class'),
    (re.compile(r'^\s*(?:(?:public|private|internal|suspend|inline|override)\s+)*fun\s+(?:<[^>]+>\s*)?(?:\w+\.)?(\w+)'), 'function'),
]
_SCALA_DECLARATIONS = [
    (re.compile(r'^\s*(?:(?:case|abstract|final|sealed|private|protected)\s+)*class\s+(\w+)'), 'class'),
    (re.compile(r'^\s*(?:case\s+)?object\s+(\w+)'), 'class'),
    (re.compile(r'^\s*(?:sealed\s+)?trait\s+(\w+)'), 'interface'),
    (re.compile(r'^\s*(?:(?:override|private|protected)\s+)*def\s+(\w+)'), 'function'),
]
_GO_DECLARATIONS = [
    (re.compile(r'^func\s+(?:\([^)]*\)\s*)?(\w+)'), 'function'),
    (re.compile(r'^type\s+(\w+)\s+struct\b'), 'class'),
    (re.compile(r'^type\s+(\w+)\s+interface\b'), 'interface'),
]
_RUST_DECLARATIONS = [
    (re.compile(r'^\s*(?:pub(?:\([^)]*\))?\s+)?(?:async\s+)?(?:unsafe\s+)?(?:const\s+)?fn\s+(\w+)'), 'function'),
    (re.compile(r'^\s*(?:pub(?:\([^)]*\))?\s+)?struct\s+(\w+)'), 'class'),
    (re.compile(r'^\s*(?:pub(?:\([^)]*\))?\s+)?enum\s+(\w+)'), 'enum'),
    (re.compile(r'^\s*(?:pub(?:\([^)]*\))?\s+)?trait\s+(\w+)'), 'interface'),
    (re.compile(r'^\s*impl(?:<[^>]*>)?\s+(?:[\w:<>]+\s+for\s+)?(\w+)'), 'class'),
]
_C_FUNCTION = re.compile(
    r'^(?!\s*(?:if|for|while|switch|return|else|do|case|sizeof)\b)'
    r'[\w\*&\s:<>,~]*?\b([A-Za-z_~][\w~]*(?:::[A-Za-z_~][\w~]*)*)\s*\([^;{}]*\)\s*(?:const\s*)?(?:noexcept\s*)?\{?\s*$'
)
_C_DECLARATIONS = [
    (re.compile(r'^\s*(?:typedef\s+)?(?:struct|union|enum)\s+(\w+)[^;]*$'), 'class'),
    (_C_FUNCTION, 'function'),
]
_CPP_DECLARATIONS = [
    (re.compile(r'^\s*(?:template\s*<[^>]*>\s*)?(?:class|struct)\s+(\w+)[^;]*$'), 'class'),
    (re.compile(r'^\s*enum\s+(?:class\s+)?(\w+)[^;]*$'), 'enum'),
    (_C_FUNCTION, 'function'),
]
_PHP_DECLARATIONS = [
    (re.compile(r'^\s*(?:(?:public|private|protected|static|abstract|final)\s+)*function\s+(\w+)'), 'function'),
    (re.compile(r'^\s*(?:(?:abstract|final)\s+)?class\s+(\w+)'), 'class'),
    (re.compile(r'^\s*interface\s+(\w+)'), 'interface'),
    (re.compile(r'^\s*trait\s+(\w+)'), 'class'),
]
_SWIFT_DECLARATIONS = [
    (re.compile(r'^\s*(?:(?:public|private|internal|open|fileprivate|static|final|override|@\w+)\s+)*func\s+(\w+)'), 'function'),
    (re.compile(r'^\s*(?:(?:public|private|internal|open|final)\s+)*(?:class|struct|extension)\s+(\w+)'), 'class'),
    (re.compile(r'^\s*(?:(?:public|private|internal)\s+)*protocol\s+(\w+)'), 'interface'),
    (re.compile(r'^\s*(?:(?:public|private|internal)\s+)*enum\s+(\w+)'), 'enum'),
]

DECLARATION_TABLES: Dict[str, List[Tuple[Pattern, str]]] = {
    'javascript': _JS_DECLARATIONS,
    'typescript': _TS_DECLARATIONS,
    'java': _JAVA_DECLARATIONS,
    'csharp': _CSHARP_DECLARATIONS,
    'kotlin': _KOTLIN_DECLARATIONS,
    'scala': _SCALA_DECLARATIONS,
    'go': _GO_DECLARATIONS,
    'rust': _RUST_DECLARATIONS,
    'c': _C_DECLARATIONS,
    'cpp': _CPP_DECLARATIONS,
    'php': _PHP_DECLARATIONS,
    'swift': _SWIFT_DECLARATIONS,
}

# Class members: ``static async name(args) {`` or ``public int name(args)``
METHOD_PATTERN = re.compile(
    r'^\s*(?:(?:public|private|protected|internal|static|final|abstract|synchronized|async|override|virtual)\s+)*'
    r'(?:[\w<>\[\],.?]+\s+)?([A-Za-z_$][\w$]*)\s*\([^)]*\)\s*(?:throws\s+[\w.,\s]+)?\{'
)
CONTROL_KEYWORDS = {'if', 'for', 'while', 'switch', 'catch', 'return', 'function', 'else', 'do', 'try', 'with', 'new'}

# Languages recognised by their declarations alone; the rest also accept a
# dense enough sprinkling of generic structure markers.
DECLARATION_LANGUAGES = {'javascript', 'typescript', 'java', 'csharp'}


class BraceStructuralParser(StructuralParser):
    """Brace-depth tracking parser for C-family languages."""

    BOUNDARY_MARKERS = {
        'javascript': (re.compile(r'^\s*/\*\*'), re.compile(r'^\s*export\s+'), re.compile(r'^\s*import\s+')),
        'typescript': (re.compile(r'^\s*/\*\*'), re.compile(r'^\s*export\s+'), re.compile(r'^\s*import\s+')),
        'java': (re.compile(r'^\s*/\*\*'), re.compile(r'^\s*import\s+'), re.compile(r'^\s*package\s+')),
        'csharp': (re.compile(r'^\s*/\*\*'), re.compile(r'^\s*using\s+'), re.compile(r'^\s*///')),
    }

    def __init__(self, language: str):
        super().__init__(language)
        self.declarations = DECLARATION_TABLES.get(language, _JS_DECLARATIONS)

    def match_declaration(self, line: str) -> Optional[Tuple[str, str]]:
        """Return ``(node_type, name)`` when the line declares something."""
        for pattern, node_type in self.declarations:
            match = pattern.search(line)
            if match:
                return node_type, match.group(1)
        return None

    def declared_names(self, lines: List[str]) -> List[str]:
        names = []
        for line in lines:
            if is_comment_line(line):
                continue
            declaration = self.match_declaration(line)
            name = declaration[1] if declaration else None
            if name is None:
                match = METHOD_PATTERN.match(line)
                if match and match.group(1) not in CONTROL_KEYWORDS:
                    name = match.group(1)
            if name and name not in names:
                names.append(name)
        return names

    def has_constructs(self, lines: List[str]) -> bool:
        if any(self.match_declaration(line) for line in lines if not is_comment_line(line)):
            return True
        if self.language in DECLARATION_LANGUAGES:
            return False
        return structural_density(lines) > 0.1

    def is_boundary(self, line: str) -> bool:
        if super().is_boundary(line):
            return True
        trimmed = line.strip()
        if '// ---' in trimmed or '/* ---' in trimmed:
            return True
        return any(p.search(trimmed) for p in self.BOUNDARY_MARKERS.get(self.language, ()))

    def parse(self, lines: List[str]) -> List[SemanticNode]:
        nodes: List[SemanticNode] = []
        current: Optional[SemanticNode] = None
        current_depth = 0
        depth = 0
        annotation_start: Optional[int] = None

        def close(node: SemanticNode, end: int):
            node.end_line = last_code_line(lines, node.start_line, end)
            nodes.append(node)

        for i, line in enumerate(lines):
            trimmed = line.strip()
            if not trimmed or is_comment_line(line):
                continue

            depth_before = depth
            opens = line.count('{')
            closes = line.count('}')
            depth = max(0, depth + opens - closes)

            if trimmed.startswith('@') and current is None:
                if annotation_start is None:
                    annotation_start = i
                continue

            declaration = None
            if current is None or depth_before <= current_depth:
                declaration = self.match_declaration(line)

            if declaration:
                if current is not None:
                    close(current, i - 1)
                node_type, name = declaration
                start = annotation_start if annotation_start is not None else i
                current = SemanticNode(node_type, name, start, i, indent=leading_indent(line))
                current_depth = depth_before
                annotation_start = None
                if opens and depth <= current_depth:
                    close(current, i)
                    current = None
                elif not opens and trimmed.endswith(';'):
                    close(current, i)
                    current = None
                continue

            annotation_start = None
            if current is not None and closes and depth <= current_depth:
                close(current, i)
                current = None

        if current is not None:
            close(current, len(lines) - 1)
        return nodes


class IndentationStructuralParser(StructuralParser):
    """Indentation tracking parser for Python."""

    DEF_PATTERN = re.compile(r'^(\s*)(?:async\s+)?def\s+([A-Za-z_]\w*)')
    CLASS_PATTERN = re.compile(r'^(\s*)class\s+([A-Za-z_]\w*)')
    DECORATOR_PATTERN = re.compile(r'^\s*@\w+')
    BOUNDARY_PATTERNS = (re.compile(r'^\s*from\s+'), re.compile(r'^\s*import\s+'))

    def has_constructs(self, lines: List[str]) -> bool:
        return any(
            self.DEF_PATTERN.match(line) or self.CLASS_PATTERN.match(line)
            or self.DECORATOR_PATTERN.match(line)
            for line in lines
        )

    def declared_names(self, lines: List[str]) -> List[str]:
        names = []
        for line in lines:
            match = self.DEF_PATTERN.match(line) or self.CLASS_PATTERN.match(line)
            if match and match.group(2) not in names:
                names.append(match.group(2))
        return names

    def is_boundary(self, line: str) -> bool:
        if super().is_boundary(line):
            return True
        trimmed = line.strip()
        if '# ---' in trimmed or '"""' in trimmed or "'''" in trimmed:
            return True
        return any(p.match(trimmed) for p in self.BOUNDARY_PATTERNS)

    def parse(self, lines: List[str]) -> List[SemanticNode]:
        nodes: List[SemanticNode] = []
        current: Optional[SemanticNode] = None
        decorator_start: Optional[int] = None

        def close(node: SemanticNode, end: int):
            node.end_line = last_code_line(lines, node.start_line, end)
            nodes.append(node)

        for i, line in enumerate(lines):
            trimmed = line.strip()
            if not trimmed or trimmed.startswith('#'):
                continue
            indent = leading_indent(line)

            match = self.DEF_PATTERN.match(line)
            node_type = 'function'
            if not match:
                match = self.CLASS_PATTERN.match(line)
                node_type = 'class'

            if match:
                if current is not None:
                    close(current, i - 1)
                start = decorator_start if decorator_start is not None else i
                current = SemanticNode(node_type, match.group(2), start, i, indent=len(match.group(1)))
                decorator_start = None
                continue

            if self.DECORATOR_PATTERN.match(line):
                if current is not None and indent <= current.indent:
                    close(current, i - 1)
                    current = None
                if decorator_start is None:
                    decorator_start = i
                continue

            decorator_start = None
            if current is not None and indent <= current.indent:
                close(current, i - 1)
                current = None

        if current is not None:
            close(current, len(lines) - 1)
        return nodes


class BlockStructuralParser(StructuralParser):
    """Fixed-size blocks for languages without a dedicated parser."""

    def __init__(self, language: str, block_size: int = 50):
        super().__init__(language)
        self.block_size = block_size

    def has_constructs(self, lines: List[str]) -> bool:
        return structural_density(lines) > 0.1

    def parse(self, lines: List[str]) -> List[SemanticNode]:
        nodes = []
        for start in range(0, len(lines), self.block_size):
            end = min(start + self.block_size - 1, len(lines) - 1)
            nodes.append(SemanticNode('block', f"block_{start}", start, end))
        return nodes


INDENTATION_LANGUAGES = {'python'}


def get_heuristic_parser(language: str) -> StructuralParser:
    if language in INDENTATION_LANGUAGES:
        return IndentationStructuralParser(language)
    if language in DECLARATION_TABLES:
        return BraceStructuralParser(language)
    return BlockStructuralParser(language)


def get_structural_parser(language: str, prefer_ast: bool = False) -> StructuralParser:
    """Pick a parser for a language.

    Args:
        language: Language tag
        prefer_ast: Try the tree-sitter backend first

    Returns:
        A tree-sitter parser when requested and available, else a heuristic one
    """
    if prefer_ast:
        try:
            from .tree_sitter import create_tree_sitter_parser, is_language_available
        except ImportError as e:
            logger.warning(f"Tree-sitter backend unavailable, using heuristic parser for {language}: {e}")
            return get_heuristic_parser(language)

        if is_language_available(language):
            try:
                return create_tree_sitter_parser(language)
            except ValueError as e:
                logger.warning(f"Tree-sitter parser unavailable for {language}: {e}")
    return get_heuristic_parser(language)
