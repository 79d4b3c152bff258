"""Architectural, framework and business context for chunks."""

import re
from typing import List, Optional, Tuple

from chunking.code_metrics import is_test_path, surrounding_lines
from chunking.models import ContextInfo, EnhancedChunk, FileContext, split_lines

# (layer, path keywords), checked in order
PATH_LAYERS: List[Tuple[str, Tuple[str, ...]]] = [
    ('presentation', ('controller', 'handler', 'route', 'view', 'api')),
    ('service', ('service',)),
    ('business', ('business', 'logic', 'manager', 'domain')),
    ('data', ('repository', 'dao', 'model', 'entity', 'database', 'persistence', 'migration')),
    ('infrastructure', ('util', 'helper', 'common', 'shared', 'infra')),
    ('configuration', ('config', 'setting')),
]

PRESENTATION_CONTENT = re.compile(r'\b(?:https?|request|response|router|res\.send|render)\b')
DATA_CONTENT = re.compile(r'\b(?:database|query|select|insert|update|delete)\b')

FRAMEWORK_MARKERS: List[Tuple[str, re.Pattern]] = [
    ('React', re.compile(r'\bReact\b|\buse(?:State|Effect|Context|Memo)\b|\.jsx\b')),
    ('Vue.js', re.compile(r'\bVue\b|\bv-(?:if|for|model|bind|on)\b|from\s+[\'"]vue[\'"]')),
    ('Angular', re.compile(r'\bAngular\b|@Component\b|@Injectable\b|@angular/')),
    ('Express.js', re.compile(r'\bexpress\b|\bapp\.(?:get|post|put|delete|use)\s*\(')),
    ('Fastify', re.compile(r'\bfastify\b')),
    ('Django', re.compile(r'\bdjango\b|models\.Model\b|\bHttpResponse\b', re.IGNORECASE)),
    ('Flask', re.compile(r'\bflask\b|@app\.route\b|\bFlask\(', re.IGNORECASE)),
    ('FastAPI', re.compile(r'\bfastapi\b|@app\.get\b|\bFastAPI\(', re.IGNORECASE)),
    ('Spring Boot', re.compile(r'@(?:SpringBootApplication|RestController|Service|Repository)\b')),
    ('JPA/Hibernate', re.compile(r'@(?:Entity|Table)\b|\bJpaRepository\b')),
    ('Mongoose', re.compile(r'\bmongoose\b|\bnew\s+Schema\(', re.IGNORECASE)),
    ('Sequelize', re.compile(r'\bsequelize\b', re.IGNORECASE)),
    ('Prisma', re.compile(r'\bprisma\b|@prisma/', re.IGNORECASE)),
    ('Jest', re.compile(r'\bjest\b|(?<![\w$.])(?:describe|it|expect)\s*\(', re.IGNORECASE)),
    ('Mocha/Chai', re.compile(r'\b(?:mocha|chai)\b', re.IGNORECASE)),
    ('PyTest', re.compile(r'\bpytest\b|@pytest\.', re.IGNORECASE)),
]

BUSINESS_DOMAINS: List[Tuple[str, Tuple[str, ...]]] = [
    ('E-commerce', ('order', 'cart', 'checkout', 'payment', 'product', 'inventory')),
    ('User Management', ('user', 'auth', 'login', 'register', 'profile', 'account')),
    ('Financial Services', ('transaction', 'billing', 'invoice', 'payment', 'finance', 'accounting')),
    ('Content Management', ('content', 'article', 'blog', 'post', 'media', 'upload')),
    ('Analytics & Reporting', ('analytics', 'report', 'dashboard', 'metric', 'tracking', 'statistics')),
    ('Communication', ('message', 'chat', 'notification', 'email', 'sms', 'communication')),
]


def _keyword_pattern(keywords: Tuple[str, ...]) -> re.Pattern:
    return re.compile(r'(?<![a-z])(?:' + '|'.join(keywords) + r')')


_DOMAIN_PATTERNS = [(domain, _keyword_pattern(keywords)) for domain, keywords in BUSINESS_DOMAINS]


class ContextAnalyzer:
    """Derives the context facet of an enhanced chunk."""

    def __init__(self, context_radius: int = 5, preview_lines: int = 3):
        """Initialize the analyzer.

        Args:
            context_radius: Lines considered on each side of a chunk
            preview_lines: Lines of that window kept in the context text
        """
        self.context_radius = context_radius
        self.preview_lines = preview_lines

    def analyze(self, chunk: EnhancedChunk, file_content: str,
                sibling_ids: Optional[List[str]] = None) -> ContextInfo:
        """Build the context record for one chunk.

        Args:
            chunk: Chunk being enhanced
            file_content: Full text of the chunk's file
            sibling_ids: Ids of every chunk produced for the file

        Returns:
            ContextInfo for the chunk
        """
        lines = split_lines(file_content)
        siblings = [chunk_id for chunk_id in (sibling_ids or []) if chunk_id != chunk.id]
        return ContextInfo(
            surrounding_context=self.surrounding_context(lines, chunk.start_line, chunk.end_line),
            architectural_layer=self.architectural_layer(chunk.content, chunk.file_path),
            file_context=FileContext(
                total_lines=len(lines),
                file_size=len(file_content),
                sibling_chunks=siblings,
            ),
            framework_context=self.framework_context(chunk.content),
            business_context=self.business_context(chunk.content, chunk.file_path),
        )

    def surrounding_context(self, lines: List[str], start_line: int, end_line: int) -> str:
        before, after = surrounding_lines(lines, start_line, end_line, self.context_radius)
        before = before[-self.preview_lines:] if self.preview_lines else []
        after = after[:self.preview_lines]
        parts = []
        if before:
            parts.append('Before:\n' + '\n'.join(before))
        if after:
            parts.append('After:\n' + '\n'.join(after))
        return '\n'.join(parts)

    @staticmethod
    def architectural_layer(content: str, file_path: str) -> str:
        if is_test_path(file_path):
            return 'test'
        lower_path = file_path.lower()
        for layer, keywords in PATH_LAYERS:
            if any(keyword in lower_path for keyword in keywords):
                return layer

        lower = content.lower()
        if PRESENTATION_CONTENT.search(lower):
            return 'presentation'
        if DATA_CONTENT.search(lower):
            return 'data'
        return 'business'

    @staticmethod
    def framework_context(content: str) -> List[str]:
        return [name for name, pattern in FRAMEWORK_MARKERS if pattern.search(content)]

    @staticmethod
    def business_context(content: str, file_path: str) -> Optional[str]:
        lower = content.lower()
        lower_path = file_path.lower()
        for domain, pattern in _DOMAIN_PATTERNS:
            if pattern.search(lower) or pattern.search(lower_path):
                return domain
        return None
