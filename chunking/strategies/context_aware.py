"""Context-aware strategy: dependency-driven overlap and business-domain tags.

Declarations are found the same way as in the semantic strategy. Every
ordered pair of declarations is then scored for how strongly the first one
depends on the second, and strong nearby dependencies widen the chunk
boundaries so collaborating code shares visible context.
"""

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Pattern, Set

from ..code_metrics import map_node_type, node_complexity, surrounding_lines
from ..models import ChunkRelationship, EnhancedChunk, make_chunk_id, split_lines, unique_chunk_id
from ..structural_parser import SemanticNode
from .base import ChunkingStrategy, StrategyName
from .semantic import SEMANTIC_LANGUAGES, parse_semantic_nodes

logger = logging.getLogger(__name__)

CALL_PATTERN = re.compile(r'([a-zA-Z_$][\w$]*)\s*\(')

IMPORT_PATTERNS: Dict[str, List[Pattern]] = {
    'javascript': [re.compile(r'^\s*import\s+'), re.compile(r'^\s*from\s+.*import'),
                   re.compile(r'require\s*\('), re.compile(r'^\s*export\s+')],
    'python': [re.compile(r'^\s*import\s+'), re.compile(r'^\s*from\s+.*import')],
    'java': [re.compile(r'^\s*import\s+'), re.compile(r'^\s*using\s+')],
    'go': [re.compile(r'^\s*import\s+')],
}
IMPORT_PATTERNS['typescript'] = IMPORT_PATTERNS['javascript']
IMPORT_PATTERNS['csharp'] = IMPORT_PATTERNS['java']
DEFAULT_IMPORT_PATTERNS = [re.compile(r'^\s*#include'), re.compile(r'^\s*import')]

VARIABLE_PATTERNS: Dict[str, List[Pattern]] = {
    'javascript': [re.compile(r'(?:const|let|var)\s+[a-zA-Z_$][\w$]*\s*='),
                   re.compile(r'[a-zA-Z_$][\w$]*\s*=\s*[^=]')],
    'python': [re.compile(r'^\s*[a-zA-Z_]\w*\s*=')],
    'java': [re.compile(r'(?:public|private|protected)?\s*(?:static)?\s*\w+\s+[a-zA-Z_]\w*\s*=')],
}
VARIABLE_PATTERNS['typescript'] = VARIABLE_PATTERNS['javascript']
VARIABLE_PATTERNS['csharp'] = VARIABLE_PATTERNS['java']
DEFAULT_VARIABLE_PATTERNS = [re.compile(r'[a-zA-Z_]\w*\s*=')]

CLASS_PATTERNS: Dict[str, List[Pattern]] = {
    'javascript': [re.compile(r'(?:class|interface)\s+[a-zA-Z_$][\w$]*'),
                   re.compile(r'(?:extends|implements)\s+[a-zA-Z_$][\w$]*')],
    'python': [re.compile(r'^\s*class\s+[a-zA-Z_]\w*'), re.compile(r'class\s+[a-zA-Z_]\w*\([^)]*\)')],
    'java': [re.compile(r'(?:class|interface)\s+[a-zA-Z_]\w*'),
             re.compile(r'(?:extends|implements)\s+[a-zA-Z_]\w*')],
}
CLASS_PATTERNS['typescript'] = CLASS_PATTERNS['javascript']
CLASS_PATTERNS['csharp'] = CLASS_PATTERNS['java']
DEFAULT_CLASS_PATTERNS = [re.compile(r'class\s+[a-zA-Z_]\w*')]

_JS_FROM = re.compile(r'from\s+[\'"]([^\'"]+)[\'"]')
_JS_REQUIRE = re.compile(r'require\s*\(\s*[\'"]([^\'"]+)[\'"]\s*\)')
_PY_IMPORT = re.compile(r'(?:from\s+(\S+)\s+import|import\s+(\S+))')
_JAVA_IMPORT = re.compile(r'import\s+([^;]+);')

BUILTIN_CALLS: Dict[str, Set[str]] = {
    'javascript': {'console', 'setTimeout', 'setInterval', 'parseInt', 'parseFloat', 'isNaN', 'isFinite'},
    'python': {'print', 'len', 'range', 'str', 'int', 'float', 'list', 'dict', 'set', 'tuple'},
    'java': {'System', 'String', 'Integer', 'Double', 'Boolean', 'Math'},
}
BUILTIN_CALLS['typescript'] = BUILTIN_CALLS['javascript']

# Ordered: the first matching domain wins, so Financial precedes E-commerce
NODE_DOMAINS = [
    ('E-commerce', ('order', 'cart', 'checkout', 'product', 'inventory', 'shipping')),
    ('Authentication', ('auth', 'login', 'register', 'user', 'password', 'token', 'session')),
    ('Data Processing', ('data', 'process', 'transform', 'parse', 'validate', 'serialize')),
    ('Communication', ('message', 'email', 'notification', 'chat', 'sms', 'communication')),
    ('Analytics', ('analytics', 'report', 'dashboard', 'metric', 'tracking', 'statistics')),
]
NODE_FINANCIAL_TERMS = ('transaction', 'billing', 'invoice', 'finance', 'accounting', 'money',
                        'currency', 'fee', 'charge')
FILE_DOMAINS = [
    ('E-commerce', ('order', 'cart', 'checkout', 'product', 'inventory')),
    ('Authentication', ('auth', 'login', 'register', 'user', 'password', 'token')),
    ('Communication', ('message', 'email', 'notification', 'chat', 'sms')),
]
FILE_FINANCIAL_TERMS = ('transaction', 'billing', 'invoice', 'finance', 'accounting', 'fee', 'charge',
                        'currency')
PAYMENT_QUALIFIERS = ('processor', 'gateway', 'method', 'transaction')


def contains_any(text: str, keywords) -> bool:
    return any(keyword in text for keyword in keywords)


def _is_financial(texts: List[str], terms, content: str) -> bool:
    if any(contains_any(text, terms) for text in texts):
        return True
    return 'payment' in content and contains_any(content, PAYMENT_QUALIFIERS)


def infer_node_domain(name: str, text: str) -> Optional[str]:
    """Business domain of a single declaration, from its name and body."""
    content = text.lower()
    lowered_name = name.lower()
    if _is_financial([content, lowered_name], NODE_FINANCIAL_TERMS, content):
        return 'Financial'
    for domain, keywords in NODE_DOMAINS:
        if contains_any(content, keywords) or contains_any(lowered_name, keywords):
            return domain
    return None


def infer_file_domain(content: str, file_path: str) -> Optional[str]:
    """Business domain of a whole file, used when a declaration has none."""
    lowered = content.lower()
    path = file_path.lower()
    if _is_financial([lowered, path], FILE_FINANCIAL_TERMS, lowered):
        return 'Financial'
    for domain, keywords in FILE_DOMAINS:
        if contains_any(lowered, keywords) or contains_any(path, keywords):
            return domain
    return None


@dataclass
class ContextualNode:
    node: SemanticNode
    content: str
    dependencies: List[str] = field(default_factory=list)
    references: List[str] = field(default_factory=list)
    business_domain: Optional[str] = None

    @property
    def name(self) -> str:
        return self.node.name

    @property
    def start_line(self) -> int:
        return self.node.start_line

    @property
    def end_line(self) -> int:
        return self.node.end_line


@dataclass
class DependencyEdge:
    source: int
    target: int
    strength: float
    type: str


class ContextAwareChunkingStrategy(ChunkingStrategy):
    """Chunks declarations with dependency-sized overlap and domain tags."""

    name = StrategyName.CONTEXT_AWARE
    description = ('Creates chunks with intelligent context awareness, dependency-based overlap, '
                   'and business domain detection')
    SUPPORTED_LANGUAGES = SEMANTIC_LANGUAGES

    def __init__(self, max_chunk_size: int = 150, min_chunk_size: int = 15,
                 context_radius: int = 8, overlap_threshold: float = 0.3,
                 prefer_ast: bool = False):
        super().__init__(prefer_ast)
        self.max_chunk_size = max_chunk_size
        self.min_chunk_size = min_chunk_size
        self.context_radius = context_radius
        self.overlap_threshold = overlap_threshold

    def is_applicable(self, language: str, content: str) -> bool:
        if not self.supports(language):
            return False
        return self.contextual_signal_count(split_lines(content), language) >= 2

    @staticmethod
    def contextual_signal_count(lines: List[str], language: str) -> int:
        """How many of imports, calls, assignments and class syntax appear."""
        signal_patterns = [
            IMPORT_PATTERNS.get(language, DEFAULT_IMPORT_PATTERNS),
            [CALL_PATTERN],
            VARIABLE_PATTERNS.get(language, DEFAULT_VARIABLE_PATTERNS),
            CLASS_PATTERNS.get(language, DEFAULT_CLASS_PATTERNS),
        ]
        return sum(
            1 for patterns in signal_patterns
            if any(pattern.search(line) for line in lines for pattern in patterns)
        )

    def chunk(self, content: str, file_path: str, snapshot_id: str) -> List[EnhancedChunk]:
        language = self.detector.detect(file_path, content)
        lines = split_lines(content)
        logger.debug(f"Starting context-aware chunking for {file_path} ({language})")

        nodes = [
            self.contextualize(node, lines, language)
            for node in parse_semantic_nodes(lines, language, parser=self.parser_for(language))
        ]
        edges = self.build_dependency_graph(nodes)
        file_domain = infer_file_domain(content, file_path)

        bounds = []
        for index, node in enumerate(nodes):
            before, after = self.intelligent_overlap(index, nodes, edges)
            start = max(0, node.start_line - before)
            end = min(len(lines) - 1, node.end_line + after)
            bounds.append((start, end))

        seen_ids: Set[str] = set()
        ids = [
            unique_chunk_id(make_chunk_id(snapshot_id, file_path, start, end), seen_ids)
            for start, end in bounds
        ]

        chunks = []
        built_ids: Set[str] = set()
        for index, node in enumerate(nodes):
            start, end = bounds[index]
            text = '\n'.join(lines[start:end + 1])
            relationships = [
                ChunkRelationship.create(
                    edge.type, ids[edge.target], edge.strength,
                    f"{edge.type} {nodes[edge.target].name}",
                    confidence=edge.strength, source='static_analysis',
                    line_number=nodes[edge.target].start_line,
                )
                for edge in edges if edge.source == index
            ]
            dependents = []
            for edge in edges:
                if edge.target == index and ids[edge.source] not in dependents:
                    dependents.append(ids[edge.source])

            chunks.append(self.build_chunk(
                lines, content, file_path, snapshot_id, language, start, end,
                symbols=[node.name],
                semantic_type=map_node_type(node.node.type),
                seen_ids=built_ids,
                complexity_score=float(min(100, node_complexity(text))),
                dependencies=node.dependencies,
                dependents=dependents,
                relationships=relationships,
                surrounding_context=self.surrounding_context_for(lines, node),
                business_context=node.business_domain or file_domain,
            ))
        logger.debug(f"Context-aware strategy produced {len(chunks)} chunks with {len(edges)} dependencies")
        return chunks

    def contextualize(self, node: SemanticNode, lines: List[str], language: str) -> ContextualNode:
        text = node.text(lines)
        return ContextualNode(
            node=node,
            content=text,
            dependencies=self.node_dependencies(text, language),
            references=self.node_references(text, language),
            business_domain=infer_node_domain(node.name, text),
        )

    @staticmethod
    def node_dependencies(text: str, language: str) -> List[str]:
        patterns = IMPORT_PATTERNS.get(language, DEFAULT_IMPORT_PATTERNS)
        dependencies: List[str] = []
        for line in split_lines(text):
            if not any(pattern.search(line) for pattern in patterns):
                continue
            name = dependency_name(line, language)
            if name and name not in dependencies:
                dependencies.append(name)
        return dependencies

    @staticmethod
    def node_references(text: str, language: str) -> List[str]:
        builtins = BUILTIN_CALLS.get(language, set())
        references: List[str] = []
        for match in CALL_PATTERN.finditer(text):
            name = match.group(1)
            if name not in builtins and name not in references:
                references.append(name)
        return references

    def build_dependency_graph(self, nodes: List[ContextualNode]) -> List[DependencyEdge]:
        edges = []
        for i, node in enumerate(nodes):
            for j, other in enumerate(nodes):
                if i == j or node.name == other.name:
                    continue
                strength = self.dependency_strength(node, other)
                if strength > 0.1:
                    edges.append(DependencyEdge(i, j, strength, self.dependency_type(node, other)))
        return edges

    @staticmethod
    def dependency_strength(node: ContextualNode, other: ContextualNode) -> float:
        strength = 0.0
        if other.name in node.references:
            strength += 0.5

        shared = [dep for dep in node.dependencies if dep in other.dependencies]
        strength += min(0.3, len(shared) * 0.1)

        distance = abs(node.start_line - other.start_line)
        strength += max(0.0, (100 - distance) / 100) * 0.2

        calls = len(re.findall(rf'\b{re.escape(other.name)}\s*\(', node.content))
        strength += min(0.4, calls * 0.1)
        return min(1.0, strength)

    @staticmethod
    def dependency_type(node: ContextualNode, other: ContextualNode) -> str:
        if re.search(rf'\b{re.escape(other.name)}\s*\(', node.content):
            return 'calls'
        if any(other.name in dep for dep in node.dependencies):
            return 'imports'
        if f"extends {other.name}" in node.content or f"implements {other.name}" in node.content:
            return 'extends'
        return 'uses'

    def intelligent_overlap(self, index: int, nodes: List[ContextualNode], edges: List[DependencyEdge]):
        """Extra leading and trailing lines toward strongly coupled neighbours."""
        node = nodes[index]
        before = 0.0
        after = 0.0
        for edge in edges:
            if edge.strength <= self.overlap_threshold:
                continue
            if edge.source == index:
                other = nodes[edge.target]
            elif edge.target == index:
                other = nodes[edge.source]
            else:
                continue

            if other.end_line < node.start_line:
                distance = node.start_line - other.end_line
                if distance < 20:
                    before = max(before, min(self.context_radius, distance / 2))
            if other.start_line > node.end_line:
                distance = other.start_line - node.end_line
                if distance < 20:
                    after = max(after, min(self.context_radius, distance / 2))
        return int(math.floor(before + 0.5)), int(math.floor(after + 0.5))

    def surrounding_context_for(self, lines: List[str], node: ContextualNode) -> str:
        before, after = surrounding_lines(lines, node.start_line, node.end_line, self.context_radius)
        parts = []
        if before:
            parts.append('Context before:')
            parts.extend(before[-3:])
        if after:
            parts.append('Context after:')
            parts.extend(after[:3])
        return '\n'.join(parts)


def dependency_name(line: str, language: str) -> Optional[str]:
    """Module named by an import-like line, if it can be read off."""
    if language in ('javascript', 'typescript'):
        match = _JS_FROM.search(line) or _JS_REQUIRE.search(line)
        return match.group(1) if match else None
    if language == 'python':
        match = _PY_IMPORT.search(line)
        if match:
            return match.group(1) or match.group(2)
        return None
    if language == 'java':
        match = _JAVA_IMPORT.search(line)
        return match.group(1).strip() if match else None
    return None
