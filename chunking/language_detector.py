"""File path to language tag mapping."""

import logging
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)


class LanguageDetector:
    """Maps a file path, and for header files a content sniff, to a language tag."""

    LANGUAGE_MAP = {
        '.js': 'javascript',
        '.jsx': 'javascript',
        '.mjs': 'javascript',
        '.cjs': 'javascript',
        '.ts': 'typescript',
        '.tsx': 'typescript',
        '.py': 'python',
        '.java': 'java',
        '.c': 'c',
        '.h': 'c',
        '.cpp': 'cpp',
        '.cc': 'cpp',
        '.hpp': 'cpp',
        '.cxx': 'cpp',
        '.cs': 'csharp',
        '.go': 'go',
        '.rb': 'ruby',
        '.php': 'php',
        '.rs': 'rust',
        '.swift': 'swift',
        '.kt': 'kotlin',
        '.kts': 'kotlin',
        '.scala': 'scala',
        '.html': 'html',
        '.htm': 'html',
        '.css': 'css',
        '.scss': 'scss',
        '.sass': 'sass',
        '.json': 'json',
        '.md': 'markdown',
        '.markdown': 'markdown',
        '.yaml': 'yaml',
        '.yml': 'yaml',
        '.sh': 'shell',
    }

    DEFAULT_LANGUAGE = 'text'

    # Tokens that make a .h header C++ rather than C
    CPP_HEADER_MARKERS = ('namespace', 'class ', 'template<', 'template <', '::')

    def detect(self, file_path: str, content: Optional[str] = None) -> str:
        """Detect the language of a file.

        Args:
            file_path: Path to the file
            content: Optional file content used to disambiguate headers

        Returns:
            Language tag, ``text`` when unknown
        """
        suffix = Path(file_path).suffix.lower()
        language = self.LANGUAGE_MAP.get(suffix, self.DEFAULT_LANGUAGE)

        if suffix == '.h' and content:
            sample = content[:4000]
            if any(marker in sample for marker in self.CPP_HEADER_MARKERS):
                language = 'cpp'

        logger.debug(f"Detected {language} for {file_path}")
        return language

    def is_supported(self, file_path: str) -> bool:
        return Path(file_path).suffix.lower() in self.LANGUAGE_MAP

    @classmethod
    def get_supported_extensions(cls) -> List[str]:
        return list(cls.LANGUAGE_MAP.keys())


_default_detector = LanguageDetector()


def detect_language(file_path: str, content: Optional[str] = None) -> str:
    return _default_detector.detect(file_path, content)
