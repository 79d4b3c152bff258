"""Per-chunk quality metrics and technical-debt estimation."""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from chunking.code_metrics import (
    HARDCODED_CREDENTIALS,
    detect_code_smells,
    detect_security_concerns,
    has_sql_concatenation,
    is_test_path,
    leading_indent,
    nesting_depth,
)
from chunking.models import (
    DebtIssue,
    EnhancedChunk,
    LinesOfCode,
    QualityMetrics,
    TechnicalDebt,
    clamp_score,
    split_lines,
)

logger = logging.getLogger(__name__)

Pattern = Tuple[str, re.Pattern]

DESCRIPTIVE_NAME = re.compile(r'\b(?:[a-z][a-z0-9]*[A-Z]\w*|[a-z][a-z0-9]*_[a-z0-9_]+)\b')
MAGIC_NUMBER = re.compile(r'(?<![\w.])\d{2,}\b')
LOGICAL_OPERATORS = re.compile(r'&&|\|\||\band\s+|\bor\s+')
CAMEL_CASE = re.compile(r'\b[a-z]+[A-Z][a-zA-Z0-9]*\b')
SNAKE_CASE = re.compile(r'\b[a-z]+_[a-z0-9_]+\b')
COMPACT_OPERATOR = re.compile(r'\w(?:==|!=|<=|>=|&&|\|\|)\w')
BRACE_NESTED_LOOP = re.compile(r'for\s*\([^)]*\)\s*\{[^}]*for\s*\([^)]*\)')
PYTHON_LOOP = re.compile(r'^\s*(?:async\s+)?(?:for|while)\b')
DB_CALL_IN_LOOP = re.compile(
    r'\b(?:for|while)\b[^\n]*\n(?:[^\n]*\n){0,5}?[^\n]*\.(?:query|execute|find|findOne|save|fetchall)\s*\('
)

TEST_INDICATORS = (
    re.compile(r'(?<![\w$.])test\s*\('),
    re.compile(r'(?<![\w$.])it\s*\('),
    re.compile(r'(?<![\w$.])describe\s*\('),
    re.compile(r'(?<![\w$.])expect\s*\('),
    re.compile(r'\bassert'),
    re.compile(r'\bshould\b'),
)

GENERAL_SECURITY_CHECKS: List[Pattern] = [
    ('Insecure HTTP URL', re.compile(r'http://(?!localhost|127\.0\.0\.1)')),
    ('Weak Random Number Generation', re.compile(r'Math\.random\s*\(|random\.random\s*\(')),
    ('Weak Hash Algorithm', re.compile(r'\b(?:md5|sha1)\b', re.IGNORECASE)),
    ('Path Traversal Risk', re.compile(r'\.\./|\.\.\\')),
]


@dataclass
class LanguageRules:
    complexity_keywords: Tuple[str, ...]
    code_smells: List[Pattern] = field(default_factory=list)
    security: List[Pattern] = field(default_factory=list)
    performance: List[Pattern] = field(default_factory=list)

    def __post_init__(self):
        self.keyword_pattern = re.compile(r'\b(?:' + '|'.join(self.complexity_keywords) + r')\b')


_JS_SMELLS = [
    ('Use of var', re.compile(r'\bvar\s+\w+')),
    ('Loose null comparison', re.compile(r'[=!]=\s*null\b(?!\s*=)')),
    ('Console logging', re.compile(r'console\.log')),
]
_JS_SECURITY = [
    ('Use of eval', re.compile(r'(?<![\w$.])eval\s*\(')),
    ('Unescaped HTML sink', re.compile(r'\.innerHTML\s*=(?!=)')),
    ('document.write usage', re.compile(r'document\.write')),
    ('String passed to setTimeout', re.compile(r'setTimeout\s*\(\s*["\']')),
]
_JS_PERFORMANCE = [
    ('DOM query', re.compile(r'document\.getElementById')),
    ('innerHTML concatenation', re.compile(r'\.innerHTML\s*\+=')),
    ('RegExp construction', re.compile(r'new\s+RegExp')),
]

LANGUAGE_RULES: Dict[str, LanguageRules] = {
    'javascript': LanguageRules(
        complexity_keywords=('if', 'else', 'for', 'while', 'switch', 'case', 'catch', 'try'),
        code_smells=_JS_SMELLS,
        security=_JS_SECURITY,
        performance=_JS_PERFORMANCE,
    ),
    'typescript': LanguageRules(
        complexity_keywords=('if', 'else', 'for', 'while', 'switch', 'case', 'catch', 'try'),
        code_smells=_JS_SMELLS + [
            ('Use of any type', re.compile(r':\s*any\b')),
            ('ts-ignore comment', re.compile(r'@ts-ignore')),
        ],
        security=_JS_SECURITY,
        performance=_JS_PERFORMANCE,
    ),
    'python': LanguageRules(
        complexity_keywords=('if', 'elif', 'else', 'for', 'while', 'try', 'except', 'with'),
        code_smells=[
            ('Bare except clause', re.compile(r'^\s*except\s*:', re.MULTILINE)),
            ('Global variable', re.compile(r'^\s*global\s+\w+', re.MULTILINE)),
            ('Print statement', re.compile(r'(?<![\w.])print\s*\(')),
        ],
        security=[
            ('Use of eval', re.compile(r'(?<![\w.])eval\s*\(')),
            ('Use of exec', re.compile(r'(?<![\w.])exec\s*\(')),
            ('Raw input', re.compile(r'(?<![\w.])input\s*\(')),
            ('Unsafe deserialization', re.compile(r'pickle\.loads?\s*\(')),
            ('Shell injection risk', re.compile(r'subprocess\.\w+\(.*shell\s*=\s*True')),
        ],
        performance=[
            ('String concatenation in loop', re.compile(r'\+=\s*(?:str\(|["\'])')),
            ('Global variable', re.compile(r'^\s*global\s+\w+', re.MULTILINE)),
        ],
    ),
    'java': LanguageRules(
        complexity_keywords=('if', 'else', 'for', 'while', 'switch', 'case', 'catch', 'try'),
        code_smells=[
            ('System.out usage', re.compile(r'System\.out\.print')),
            ('Empty catch block', re.compile(r'catch\s*\([^)]*\)\s*\{\s*\}')),
        ],
        security=[
            ('Runtime.exec usage', re.compile(r'Runtime\.getRuntime\(\)\.exec')),
            ('Dynamic class loading', re.compile(r'Class\.forName')),
            ('Unprepared SQL statement', re.compile(r'Statement\.execute|createStatement\(\)\.execute')),
            ('Weak hash algorithm', re.compile(r'MessageDigest\.getInstance\("MD5"\)')),
        ],
        performance=[
            ('String concatenation', re.compile(r'String\s+\w+\s*=\s*"[^"]*"\s*\+')),
            ('Legacy collection', re.compile(r'\b(?:Vector|Hashtable)\b')),
            ('Synchronized block', re.compile(r'synchronized\s*\(')),
        ],
    ),
}


@dataclass
class QualityWeights:
    readability: float = 0.25
    complexity: float = 0.20
    maintainability: float = 0.20
    documentation: float = 0.15
    test_coverage: float = 0.10
    security: float = 0.10


@dataclass
class QualityThresholds:
    high_complexity: float = 15
    low_maintainability: float = 30
    low_documentation: float = 0.1
    high_duplication: float = 70
    high_security_risk: float = 60


@dataclass
class QualityConfig:
    weights: QualityWeights = field(default_factory=QualityWeights)
    thresholds: QualityThresholds = field(default_factory=QualityThresholds)


def nested_loop_count(content: str, language: str) -> int:
    """Loops opened inside another loop's body."""
    if language != 'python':
        return len(BRACE_NESTED_LOOP.findall(content))

    count = 0
    open_loops: List[int] = []
    for line in split_lines(content):
        if not line.strip() or line.strip().startswith('#'):
            continue
        indent = leading_indent(line)
        while open_loops and indent <= open_loops[-1]:
            open_loops.pop()
        if PYTHON_LOOP.match(line):
            if open_loops:
                count += 1
            open_loops.append(indent)
    return count


def rest_of_file(file_content: str, start_line: int, end_line: int) -> str:
    """File text with the chunk's own line range removed."""
    lines = split_lines(file_content)
    return '\n'.join(lines[:start_line] + lines[end_line + 1:])


class QualityMetricsCalculator:
    """Computes readability, risk and debt scores for chunks."""

    def __init__(self, config: Optional[QualityConfig] = None):
        self.config = config or QualityConfig()

    def calculate_for_chunk(self, chunk: EnhancedChunk,
                            file_content: Optional[str] = None) -> QualityMetrics:
        """Quality metrics for an enhanced chunk.

        Args:
            chunk: Chunk to score
            file_content: Full text of the chunk's file, used for duplication risk

        Returns:
            QualityMetrics for the chunk
        """
        rest = None
        if file_content is not None:
            rest = rest_of_file(file_content, chunk.start_line, chunk.end_line)
        return self.calculate(chunk.content, chunk.language, chunk.file_path, chunk.symbols, rest)

    def calculate(self, content: str, language: str, file_path: str = '',
                  symbols: Optional[List[str]] = None,
                  other_content: Optional[str] = None) -> QualityMetrics:
        """Quality metrics for a piece of source text.

        Args:
            content: Chunk text
            language: Language tag
            file_path: Path of the containing file
            symbols: Names declared by the chunk
            other_content: Rest of the file, without the chunk itself

        Returns:
            QualityMetrics with every score clamped to its range
        """
        loc = LinesOfCode.count(content)
        readability = self.readability_score(content)
        complexity = self.complexity_score(content, language)
        documentation = self.documentation_ratio(loc)
        maintainability = self.maintainability_score(content, complexity, readability, loc)
        duplication = self.duplication_risk(content, other_content)
        performance = self.performance_risk(content, language)
        security = self.security_risk(content, language)
        test_coverage = self.test_coverage(content, file_path, symbols or [])
        debt = self.technical_debt(content, language, complexity, documentation, duplication, maintainability)
        if security >= self.config.thresholds.high_security_risk:
            logger.debug(f"High security risk ({security}) in {file_path or language} chunk")

        weights = self.config.weights
        overall = (
            readability * weights.readability
            + (100 - complexity) * weights.complexity
            + maintainability * weights.maintainability
            + documentation * 100 * weights.documentation
            + (test_coverage or 0.0) * 100 * weights.test_coverage
            + (100 - security) * weights.security
        )
        return QualityMetrics(
            overall_score=round(clamp_score(overall), 1),
            readability_score=readability,
            documentation_ratio=round(documentation, 4),
            duplication_risk=duplication,
            performance_risk=performance,
            security_risk=security,
            maintainability_score=maintainability,
            technical_debt=debt,
            test_coverage=test_coverage,
            style_compliance_score=self.style_compliance(content, language),
        )

    def readability_score(self, content: str) -> float:
        lines = split_lines(content)
        score = 100.0
        score -= sum(1 for line in lines if len(line) > 120) * 5
        if len(lines) > 50:
            score -= (len(lines) - 50) * 0.5
        score += min(10.0, len(DESCRIPTIVE_NAME.findall(content)) * 0.5)
        max_indent = max((leading_indent(line) for line in lines if line.strip()), default=0)
        if max_indent > 16:
            score -= (max_indent - 16) * 2
        score -= len(MAGIC_NUMBER.findall(content)) * 2
        return float(round(clamp_score(score)))

    def complexity_score(self, content: str, language: str) -> float:
        """Keyword and operator count plus a nesting surcharge, scaled to 0-100."""
        rules = LANGUAGE_RULES.get(language)
        if rules is None:
            return 10.0
        complexity = 1
        complexity += len(rules.keyword_pattern.findall(content))
        complexity += len(LOGICAL_OPERATORS.findall(content))
        complexity += max(0, nesting_depth(content, language) - 2) * 2
        return float(min(100, complexity * 3))

    def maintainability_score(self, content: str, complexity: float, readability: float,
                              loc: Optional[LinesOfCode] = None) -> float:
        loc = loc or LinesOfCode.count(content)
        score = 100 - complexity * 0.3
        if loc.total > 100:
            score -= 10
        elif loc.total > 50:
            score -= 5
        comment_share = loc.comments / loc.total if loc.total else 0.0
        score += comment_share * 20
        score += (readability - 50) * 0.2
        return round(clamp_score(score), 1)

    @staticmethod
    def documentation_ratio(loc: LinesOfCode) -> float:
        documented = loc.comments + loc.code
        if documented == 0:
            return 0.0
        return loc.comments / documented

    @staticmethod
    def duplication_risk(content: str, other_content: Optional[str] = None) -> float:
        """Share of substantial lines that recur elsewhere, as a 0-100 risk."""
        substantial = [line.strip() for line in split_lines(content) if len(line.strip()) > 10]
        if not substantial:
            return 0.0

        if other_content is None:
            seen = set()
            repeated = 0
            for line in substantial:
                if line in seen:
                    repeated += 1
                seen.add(line)
            return round(min(100.0, repeated / len(substantial) * 200), 1)

        elsewhere = {line.strip() for line in split_lines(other_content) if line.strip()}
        recurring = sum(1 for line in substantial if line in elsewhere)
        return round(min(100.0, recurring / len(substantial) * 100), 1)

    @staticmethod
    def performance_risk(content: str, language: str) -> float:
        risk = 0
        rules = LANGUAGE_RULES.get(language)
        if rules is not None:
            for _, pattern in rules.performance:
                risk += len(pattern.findall(content)) * 10
        risk += nested_loop_count(content, language) * 20
        risk += len(DB_CALL_IN_LOOP.findall(content)) * 15
        return float(min(100, risk))

    @staticmethod
    def security_risk(content: str, language: str) -> float:
        risk = 0
        rules = LANGUAGE_RULES.get(language)
        if rules is not None:
            for _, pattern in rules.security:
                risk += len(pattern.findall(content)) * 15
        for _, pattern in GENERAL_SECURITY_CHECKS:
            if pattern.search(content):
                risk += 10
        if any(pattern.search(content) for pattern in HARDCODED_CREDENTIALS):
            risk += 10
        if has_sql_concatenation(content):
            risk += 15
        return float(min(100, risk))

    def code_smells(self, content: str, language: str) -> List[str]:
        """General smell names followed by language-specific ones."""
        smells = detect_code_smells(content)
        rules = LANGUAGE_RULES.get(language)
        if rules is not None:
            for name, pattern in rules.code_smells:
                if name not in smells and pattern.search(content):
                    smells.append(name)
        return smells

    def security_concerns(self, content: str, language: str) -> List[str]:
        concerns = detect_security_concerns(content)
        rules = LANGUAGE_RULES.get(language)
        if rules is not None:
            for name, pattern in rules.security:
                if name not in concerns and pattern.search(content):
                    concerns.append(name)
        return concerns

    @staticmethod
    def test_coverage(content: str, file_path: str, symbols: List[str]) -> Optional[float]:
        """Rough test-coverage estimate; ``None`` when there is nothing to cover."""
        if not symbols:
            return None
        if is_test_path(file_path):
            return 1.0
        indicators = sum(1 for pattern in TEST_INDICATORS if pattern.search(content))
        return min(1.0, indicators * 0.2)

    @staticmethod
    def style_compliance(content: str, language: str) -> float:
        lines = split_lines(content)
        unit = 4 if language == 'python' else 2
        indentation_issues = 0
        for line in lines:
            if not line.strip():
                continue
            prefix = line[:leading_indent(line)]
            if ' ' in prefix and '\t' in prefix:
                indentation_issues += 1
            elif '\t' not in prefix and len(prefix) % unit:
                indentation_issues += 1

        naming_issues = 0
        if len(CAMEL_CASE.findall(content)) > 5 and len(SNAKE_CASE.findall(content)) > 5:
            naming_issues += 1

        long_lines = sum(1 for line in lines if len(line) > 120)
        spacing_issues = sum(1 for line in lines if line != line.rstrip())
        spacing_issues += len(COMPACT_OPERATOR.findall(content))

        score = 100 - indentation_issues * 2 - naming_issues * 3 - long_lines - spacing_issues
        return float(max(0, score))

    def technical_debt(self, content: str, language: str, complexity: float,
                       documentation: float, duplication: float,
                       maintainability: float = 100.0) -> TechnicalDebt:
        """Itemized debt issues with a rolled-up severity and fix time (hours)."""
        thresholds = self.config.thresholds
        line_count = len(split_lines(content))
        issues: List[DebtIssue] = []

        rules = LANGUAGE_RULES.get(language)
        if rules is not None:
            for name, pattern in rules.code_smells:
                if pattern.search(content):
                    issues.append(DebtIssue(
                        category='code_smells',
                        description=f"Code smell detected: {name}",
                        severity='medium',
                        suggestion='Refactor to follow best practices',
                        estimated_effort=2,
                    ))
        for name in self.security_concerns(content, language):
            issues.append(DebtIssue(
                category='security_vulnerabilities',
                description=f"Security concern: {name}",
                severity='high',
                suggestion='Review and apply secure coding practices',
                estimated_effort=4,
            ))
        if nested_loop_count(content, language):
            issues.append(DebtIssue(
                category='performance_issues',
                description='Nested loops detected',
                severity='medium',
                suggestion='Consider optimizing algorithm complexity',
                estimated_effort=3,
            ))
        if line_count > 50:
            issues.append(DebtIssue(
                category='maintainability_issues',
                description='Function/method is too long',
                severity='medium',
                suggestion='Break down into smaller functions',
                estimated_effort=3,
            ))
        if complexity > thresholds.high_complexity:
            issues.append(DebtIssue(
                category='maintainability_issues',
                description='High complexity',
                severity='high',
                suggestion='Simplify logic and reduce branching',
                estimated_effort=4,
            ))
        if maintainability < thresholds.low_maintainability:
            issues.append(DebtIssue(
                category='maintainability_issues',
                description='Low maintainability',
                severity='medium',
                suggestion='Reduce size and complexity, add documentation',
                estimated_effort=3,
            ))
        if documentation < thresholds.low_documentation and line_count > 10:
            issues.append(DebtIssue(
                category='documentation_gaps',
                description='Insufficient documentation',
                severity='low',
                suggestion='Add comments describing intent and behavior',
                estimated_effort=1,
            ))
        if duplication > thresholds.high_duplication:
            issues.append(DebtIssue(
                category='maintainability_issues',
                description='High duplication risk',
                severity='medium',
                suggestion='Extract repeated code into a shared helper',
                estimated_effort=2,
            ))

        categories: List[str] = []
        for issue in issues:
            if issue.category not in categories:
                categories.append(issue.category)
        return TechnicalDebt(
            estimated_fix_time=float(sum(issue.estimated_effort or 1 for issue in issues)),
            severity=self.debt_severity(issues),
            categories=categories,
            issues=issues,
        )

    @staticmethod
    def debt_severity(issues: List[DebtIssue]) -> str:
        counts = {severity: 0 for severity in ('low', 'medium', 'high', 'critical')}
        for issue in issues:
            counts[issue.severity] += 1
        if counts['critical'] or counts['high'] > 2:
            return 'critical'
        if counts['high'] or counts['medium'] > 3:
            return 'high'
        if counts['medium']:
            return 'medium'
        return 'low'
