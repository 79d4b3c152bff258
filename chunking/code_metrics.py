"""Lexical heuristics shared by strategies and the enhancement stage.

Every function here is pure: it reads text and returns a value, so running
it twice over the same chunk always gives the same answer.
"""

import re
from collections import Counter
from typing import List

from .models import split_lines

BRACE_LANGUAGES = {
    'javascript', 'typescript', 'java', 'c', 'cpp', 'csharp', 'go', 'rust',
    'php', 'swift', 'kotlin', 'scala',
}

COMMENT_PREFIXES = ('//', '#', '/*', '*')

NODE_COMPLEXITY_PATTERN = re.compile(r'\b(?:if|for|while|switch|case|catch)\b|&&|\|\|')
C_LIKE_COMPLEXITY_PATTERN = re.compile(r'\b(?:if|for|while|case|catch|switch)\b|&&|\|\|')
PYTHON_COMPLEXITY_PATTERN = re.compile(r'\b(?:if|elif|for|while|except|and|or|try)\b')

JS_IMPORT_FROM = re.compile(r'import\s+[^;]*?\s+from\s+[\'"]([^\'"]+)[\'"]')
JS_IMPORT_BARE = re.compile(r'^\s*import\s+[\'"]([^\'"]+)[\'"]', re.MULTILINE)
JS_REQUIRE = re.compile(r'require\s*\(\s*[\'"]([^\'"]+)[\'"]\s*\)')
PY_FROM_IMPORT = re.compile(r'^\s*from\s+(\S+)\s+import\b', re.MULTILINE)
PY_IMPORT = re.compile(r'^\s*import\s+([\w.]+(?:\s*,\s*[\w.]+)*)', re.MULTILINE)
JAVA_IMPORT = re.compile(r'import\s+(?:static\s+)?([^;\s]+)\s*;')
GO_IMPORT = re.compile(r'^\s*(?:import\s+)?(?:\w+\s+)?"([\w./-]+)"', re.MULTILINE)
C_INCLUDE = re.compile(r'^\s*#include\s+[<"]([^>"]+)[>"]', re.MULTILINE)
CSHARP_USING = re.compile(r'^\s*using\s+([\w.]+)\s*;', re.MULTILINE)

LONG_PARAMETER_LIST = re.compile(r'\([^)]{50,}\)')
DEAD_CODE_MARKERS = re.compile(r'\b(?:TODO|FIXME|HACK|XXX)\b')

SQL_KEYWORDS = ('select', 'insert', 'update', 'delete')
SQL_CONCATENATION = ('" + ', "' + ", '+ "', "+ '", '" +', "' +", '`${', 'f"', "f'", '" %', "' %", '.format(')
HARDCODED_CREDENTIALS = (
    re.compile(r'(?:const|let|var)\s+(?:password|secret|token|key)\s*=\s*["\'][^"\']+["\']', re.IGNORECASE),
    re.compile(r'(?:password|secret|token|key)\s*[:=]\s*["\'][^"\']+["\']', re.IGNORECASE),
)


TEST_PATH_PATTERN = re.compile(r'(?:^|[/\\._-])(?:tests?|specs?|__tests__)(?:[/\\._-]|$)')


def is_test_path(file_path: str) -> bool:
    return bool(TEST_PATH_PATTERN.search(file_path.lower()))


def is_comment_line(line: str) -> bool:
    return line.strip().startswith(COMMENT_PREFIXES)


def leading_indent(line: str) -> int:
    return len(line) - len(line.lstrip())


def node_complexity(content: str) -> int:
    """Decision-point count plus one, language agnostic."""
    return len(NODE_COMPLEXITY_PATTERN.findall(content)) + 1


def cyclomatic_complexity(content: str, language: str) -> int:
    if language == 'python':
        pattern = PYTHON_COMPLEXITY_PATTERN
    elif language in BRACE_LANGUAGES:
        pattern = C_LIKE_COMPLEXITY_PATTERN
    else:
        return 1
    return len(pattern.findall(content)) + 1


def nesting_depth(content: str, language: str) -> int:
    """Maximum block depth: brace and paren balance, or indent levels for Python."""
    max_depth = 0
    if language == 'python':
        for line in split_lines(content):
            if line.strip() and not is_comment_line(line):
                max_depth = max(max_depth, leading_indent(line) // 4)
        return max_depth

    depth = 0
    for line in split_lines(content):
        trimmed = line.strip()
        if not trimmed:
            continue
        depth += len(re.findall(r'[{(]', trimmed)) - len(re.findall(r'[})]', trimmed))
        max_depth = max(max_depth, depth)
    return max_depth


def complexity_score(content: str, language: str) -> float:
    """Cyclomatic complexity with nesting and length surcharges, 0-100."""
    score = float(cyclomatic_complexity(content, language))
    score += nesting_depth(content, language) * 0.5
    line_count = len(split_lines(content))
    if line_count > 50:
        score += (line_count - 50) * 0.1
    return max(0.0, min(100.0, round(score, 1)))


def comment_ratio(content: str) -> float:
    lines = split_lines(content)
    if not lines:
        return 0.0
    comments = sum(1 for line in lines if line.strip().startswith(('//', '#', '*')))
    return comments / len(lines)


def maintainability_index(content: str) -> float:
    line_count = len(split_lines(content))
    length_penalty = max(0.0, (line_count - 100) * 0.01)
    index = 100 - length_penalty + comment_ratio(content) * 20
    return float(max(0, min(100, round(index))))


def extract_dependencies(content: str, language: str) -> List[str]:
    """Module names imported by the text, in order of first appearance."""
    found: List[str] = []

    def add(name: str):
        name = name.strip()
        if name and name not in found:
            found.append(name)

    if language in ('javascript', 'typescript'):
        for pattern in (JS_IMPORT_FROM, JS_IMPORT_BARE, JS_REQUIRE):
            for match in pattern.finditer(content):
                add(match.group(1))
    elif language == 'python':
        for match in PY_FROM_IMPORT.finditer(content):
            module = match.group(1)
            add(module if module.startswith('.') else module.split('.')[0])
        for match in PY_IMPORT.finditer(content):
            for module in match.group(1).split(','):
                add(module.strip().split('.')[0])
    elif language in ('java', 'kotlin', 'scala'):
        for match in JAVA_IMPORT.finditer(content):
            add(match.group(1))
    elif language == 'go':
        if 'import' in content:
            for match in GO_IMPORT.finditer(content):
                add(match.group(1))
    elif language in ('c', 'cpp'):
        for match in C_INCLUDE.finditer(content):
            add(match.group(1))
    elif language == 'csharp':
        for match in CSHARP_USING.finditer(content):
            add(match.group(1))
    return found


def detect_design_patterns(content: str) -> List[str]:
    lower = content.lower()
    patterns = []
    if 'singleton' in lower or ('instance' in lower and 'static' in lower):
        patterns.append('Singleton')
    if 'factory' in lower or 'create' in lower:
        patterns.append('Factory')
    if 'observer' in lower or 'notify' in lower:
        patterns.append('Observer')
    if 'strategy' in lower or 'algorithm' in lower:
        patterns.append('Strategy')
    if 'decorator' in lower or 'wrapper' in lower:
        patterns.append('Decorator')
    if 'adapter' in lower or 'convert' in lower:
        patterns.append('Adapter')
    if 'builder' in lower or 'build' in lower:
        patterns.append('Builder')
    return patterns


def duplicate_line_count(lines: List[str], min_length: int = 10) -> int:
    """Number of distinct substantial lines that occur more than twice."""
    counts = Counter(line.strip() for line in lines if len(line.strip()) > min_length)
    return sum(1 for count in counts.values() if count > 2)


def detect_code_smells(content: str) -> List[str]:
    lines = split_lines(content)
    smells = []
    if len(lines) > 50:
        smells.append('Long Method')
    if LONG_PARAMETER_LIST.search(content):
        smells.append('Long Parameter List')
    if duplicate_line_count(lines):
        smells.append('Duplicate Code')
    if 'class ' in content and len(lines) > 200:
        smells.append('Large Class')
    if DEAD_CODE_MARKERS.search(content):
        smells.append('Dead Code')
    return smells


def has_sql_concatenation(content: str) -> bool:
    lower = content.lower()
    if not any(re.search(rf'\b{keyword}\b', lower) for keyword in SQL_KEYWORDS):
        return False
    return any(marker in content for marker in SQL_CONCATENATION)


def detect_security_concerns(content: str) -> List[str]:
    lower = content.lower()
    concerns = []
    if has_sql_concatenation(content):
        concerns.append('SQL Injection Risk')
    if 'innerhtml' in lower or re.search(r'\beval\s*\(', lower):
        concerns.append('XSS Risk')
    if any(pattern.search(content) for pattern in HARDCODED_CREDENTIALS):
        concerns.append('Hardcoded Credentials')
    if 'math.random' in lower or 'random.random' in lower:
        concerns.append('Weak Random Number Generation')
    if '../' in content or '..\\' in content:
        concerns.append('Path Traversal Risk')
    return concerns


def infer_semantic_type(content: str, language: str, file_path: str = '') -> str:
    """Classify a chunk without structural information."""
    lower = content.lower()
    path_lower = file_path.lower()

    if (is_test_path(file_path) or 'describe(' in lower
            or re.search(r'\bit\(', lower) or re.search(r'\bdef test_', lower)
            or re.search(r'\btest\(', lower)):
        return 'test'
    if language == 'markdown' or 'readme' in path_lower:
        return 'documentation'
    if language in ('json', 'yaml') or re.search(r'\b(?:config|settings)\b', path_lower):
        return 'config'
    if language == 'shell':
        return 'script'

    if language in ('javascript', 'typescript'):
        if re.search(r'\bclass\s+\w', content):
            return 'class'
        if re.search(r'\binterface\s+\w', content):
            return 'interface'
        if 'function ' in content or '=>' in content:
            return 'function'
    elif language == 'python':
        if re.search(r'^\s*class\s+\w', content, re.MULTILINE):
            return 'class'
        if re.search(r'^\s*(?:async\s+)?def\s+\w', content, re.MULTILINE):
            return 'function'
    elif language in BRACE_LANGUAGES:
        if re.search(r'\binterface\s+\w', content):
            return 'interface'
        if re.search(r'\b(?:class|struct)\s+\w', content):
            return 'class'
        if re.search(r'\benum\s+\w', content):
            return 'enum'
        if re.search(r'\b(?:public|private|protected|func|fn|fun|def)\b', content):
            return 'function'
    return 'module'


def map_node_type(node_type: str) -> str:
    """Semantic type for a structural node type."""
    if node_type in ('function', 'method'):
        return 'function'
    if node_type in ('class', 'interface', 'type', 'enum'):
        return node_type
    return 'module'


def surrounding_lines(lines: List[str], start_line: int, end_line: int, radius: int):
    """Lines before and after a range, clipped to the file."""
    before = lines[max(0, start_line - radius):start_line]
    after = lines[end_line + 1:end_line + 1 + radius]
    return before, after
