"""Hierarchical strategy: nested scopes become parent/child chunk trees.

Open scopes live on a stack of integer handles into an arena of
``ScopeRecord`` entries, so parents and children refer to each other by
handle rather than by object.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Set, Tuple

from ..code_metrics import is_comment_line, leading_indent, map_node_type, node_complexity
from ..models import ChunkRelationship, EnhancedChunk, make_chunk_id, split_lines, unique_chunk_id
from ..structural_parser import CONTROL_KEYWORDS, METHOD_PATTERN, last_code_line
from .base import ChunkingStrategy, StrategyName

logger = logging.getLogger(__name__)

HIERARCHICAL_LANGUAGES = frozenset({'javascript', 'typescript', 'java', 'csharp', 'python'})

_JS_CLASS = re.compile(r'\bclass\s+([a-zA-Z_$][\w$]*)')
_JS_FUNCTION = re.compile(r'\bfunction\b\s*\*?\s*([a-zA-Z_$][\w$]*)')
_JS_ARROW = re.compile(r'(?:const|let|var)\s+([a-zA-Z_$][\w$]*)\s*=\s*(?:async\s+)?\([^)]*\)\s*=>')
_PY_CLASS = re.compile(r'^\s*class\s+([a-zA-Z_]\w*)')
_PY_FUNCTION = re.compile(r'^\s*(?:async\s+)?def\s+([a-zA-Z_]\w*)')
_JAVA_CLASS = re.compile(r'\b(?:class|record|enum)\s+([a-zA-Z_]\w*)')
_JAVA_INTERFACE = re.compile(r'\binterface\s+([a-zA-Z_]\w*)')
_SCOPE_DECLARATION = re.compile(r'^(?:class|def|async\s+def)\s+')
_METHOD_EXCLUDED_WORDS = re.compile(r'=|\bfunction\b|\bclass\b|\bif\b|\bfor\b|\bwhile\b')


@dataclass
class ScopeRecord:
    type: str
    name: str
    start_line: int
    end_line: int
    indent: int
    level: int
    depth_at_start: int = 0
    parent: Optional[int] = None
    children: List[int] = field(default_factory=list)


def identify_scope(line: str, language: str) -> Optional[Tuple[str, str]]:
    """Return ``(node_type, name)`` when a line opens a nestable scope."""
    if language == 'python':
        match = _PY_CLASS.match(line)
        if match:
            return 'class', match.group(1)
        match = _PY_FUNCTION.match(line)
        if match:
            return 'function', match.group(1)
        return None

    if language in ('javascript', 'typescript'):
        match = _JS_CLASS.search(line)
        if match:
            return 'class', match.group(1)
        match = _JS_FUNCTION.search(line)
        if match:
            return 'function', match.group(1)
        match = _JS_ARROW.search(line)
        if match:
            return 'function', match.group(1)
        if not _METHOD_EXCLUDED_WORDS.search(line):
            match = METHOD_PATTERN.match(line)
            if match and match.group(1) not in CONTROL_KEYWORDS:
                return 'method', match.group(1)
        return None

    if language in ('java', 'csharp'):
        match = _JAVA_INTERFACE.search(line)
        if match:
            return 'interface', match.group(1)
        match = _JAVA_CLASS.search(line)
        if match:
            return 'class', match.group(1)
        match = METHOD_PATTERN.match(line)
        if match and match.group(1) not in CONTROL_KEYWORDS:
            return 'method', match.group(1)
    return None


def max_brace_depth(lines: List[str]) -> int:
    depth = 0
    deepest = 0
    for line in lines:
        depth += line.count('{') - line.count('}')
        deepest = max(deepest, depth)
    return deepest


def max_declaration_level(lines: List[str]) -> int:
    """Deepest indent level (four spaces per level) of a class or def line."""
    deepest = 0
    for line in lines:
        trimmed = line.strip()
        if not trimmed or trimmed.startswith('#'):
            continue
        if _SCOPE_DECLARATION.match(trimmed):
            deepest = max(deepest, leading_indent(line) // 4)
    return deepest


class ScopeTree:
    """Arena of scope records built by a single stack-based pass."""

    def __init__(self):
        self.records: List[ScopeRecord] = []
        self.roots: List[int] = []

    def __len__(self):
        return len(self.records)

    def __getitem__(self, handle: int) -> ScopeRecord:
        return self.records[handle]

    def add(self, record: ScopeRecord) -> int:
        self.records.append(record)
        return len(self.records) - 1

    def attach(self, handle: int):
        parent = self.records[handle].parent
        if parent is None:
            self.roots.append(handle)
        else:
            self.records[parent].children.append(handle)

    def flatten(self) -> List[int]:
        """Handles in depth-first order, children in source order."""
        order: List[int] = []

        def visit(handle: int):
            order.append(handle)
            for child in sorted(self.records[handle].children, key=lambda h: self.records[h].start_line):
                visit(child)

        for root in sorted(self.roots, key=lambda h: self.records[h].start_line):
            visit(root)
        return order

    @classmethod
    def parse(cls, lines: List[str], language: str) -> 'ScopeTree':
        tree = cls()
        stack: List[int] = []
        depth = 0
        python = language == 'python'

        def pop(end: int):
            handle = stack.pop()
            record = tree[handle]
            record.end_line = last_code_line(lines, record.start_line, max(record.start_line, end))
            tree.attach(handle)

        for i, line in enumerate(lines):
            trimmed = line.strip()
            if not trimmed or is_comment_line(line):
                continue
            indent = leading_indent(line)
            depth_before = depth
            if not python:
                depth = max(0, depth + line.count('{') - line.count('}'))

            scope = identify_scope(line, language)
            if python or scope:
                # Dedent, or a sibling construct, closes the scopes it leaves
                while stack and indent <= tree[stack[-1]].indent:
                    pop(i - 1)

            if scope:
                node_type, name = scope
                handle = tree.add(ScopeRecord(
                    type=node_type,
                    name=name,
                    start_line=i,
                    end_line=i,
                    indent=indent,
                    level=len(stack),
                    depth_at_start=depth_before,
                    parent=stack[-1] if stack else None,
                ))
                stack.append(handle)
                if not python and '{' in line and depth <= depth_before:
                    pop(i)
                continue

            if not python and '}' in line:
                while stack and depth <= tree[stack[-1]].depth_at_start:
                    pop(i)

        while stack:
            pop(len(lines) - 1)
        return tree


class HierarchicalChunkingStrategy(ChunkingStrategy):
    """Emits every nested scope as its own chunk linked to its parent and children."""

    name = StrategyName.HIERARCHICAL
    description = 'Creates hierarchical chunks with parent-child relationships for nested structures'
    SUPPORTED_LANGUAGES = HIERARCHICAL_LANGUAGES

    def is_applicable(self, language: str, content: str) -> bool:
        if not self.supports(language):
            return False
        lines = split_lines(content)
        return max_brace_depth(lines) > 2 or max_declaration_level(lines) > 1

    def chunk(self, content: str, file_path: str, snapshot_id: str) -> List[EnhancedChunk]:
        language = self.detector.detect(file_path, content)
        lines = split_lines(content)
        tree = ScopeTree.parse(lines, language)
        order = tree.flatten()
        logger.debug(f"Hierarchical parse found {len(order)} scopes in {file_path}")

        seen_ids: Set[str] = set()
        ids = {}
        for handle in order:
            record = tree[handle]
            ids[handle] = unique_chunk_id(
                make_chunk_id(snapshot_id, file_path, record.start_line, record.end_line, f"_L{record.level}"),
                seen_ids,
            )

        chunks = []
        built_ids: Set[str] = set()
        for handle in order:
            record = tree[handle]
            text = '\n'.join(lines[record.start_line:record.end_line + 1])
            chunk = self.build_chunk(
                lines, content, file_path, snapshot_id, language,
                record.start_line, record.end_line,
                symbols=[record.name],
                semantic_type=map_node_type(record.type),
                seen_ids=built_ids,
                id_suffix=f"_L{record.level}",
                complexity_score=self.scope_complexity(record, text),
                design_patterns=self.scope_patterns(record),
                relationships=self.scope_relationships(tree, handle, ids),
                surrounding_context=self.scope_context(tree, handle) or None,
            )
            chunks.append(chunk)
        return chunks

    @staticmethod
    def scope_complexity(record: ScopeRecord, text: str) -> float:
        score = node_complexity(text) + record.level * 0.5 + len(record.children) * 0.3
        return round(min(100.0, score), 1)

    @staticmethod
    def scope_patterns(record: ScopeRecord) -> List[str]:
        patterns = []
        if record.type == 'class' and record.children:
            patterns.append('Composite')
        if record.level > 2:
            patterns.append('Nested Structure')
        return patterns

    @staticmethod
    def scope_relationships(tree: ScopeTree, handle: int, ids) -> List[ChunkRelationship]:
        record = tree[handle]
        relationships = []
        if record.parent is not None:
            parent = tree[record.parent]
            relationships.append(ChunkRelationship.create(
                'extends', ids[record.parent], 0.9, f"Child of {parent.name}",
                confidence=0.9, source='ast', line_number=record.start_line,
            ))
        for child_handle in record.children:
            child = tree[child_handle]
            relationships.append(ChunkRelationship.create(
                'uses', ids[child_handle], 0.8, f"Contains {child.name}",
                confidence=0.8, source='ast', line_number=child.start_line,
            ))
        return relationships

    @staticmethod
    def scope_context(tree: ScopeTree, handle: int) -> str:
        record = tree[handle]
        parts = []
        if record.parent is not None:
            parent = tree[record.parent]
            parts.append(f"Parent: {parent.name} ({parent.type})")
        if record.children:
            parts.append(f"Children: {', '.join(tree[h].name for h in record.children)}")
        return '\n'.join(parts)
