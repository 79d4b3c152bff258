"""Unit tests for language detection."""

import pytest

from chunking.language_detector import LanguageDetector, detect_language


class TestLanguageDetector:
    """Test cases for LanguageDetector."""

    @pytest.fixture
    def detector(self):
        return LanguageDetector()

    @pytest.mark.parametrize("path,expected", [
        ("src/app.js", "javascript"),
        ("src/App.jsx", "javascript"),
        ("src/index.ts", "typescript"),
        ("src/view.tsx", "typescript"),
        ("main.py", "python"),
        ("Main.java", "java"),
        ("lib.rs", "rust"),
        ("server.go", "go"),
        ("Program.cs", "csharp"),
        ("README.md", "markdown"),
        ("config.yml", "yaml"),
        ("deploy.sh", "shell"),
    ])
    def test_detect_by_extension(self, detector, path, expected):
        assert detector.detect(path) == expected

    def test_unknown_extension_is_text(self, detector):
        assert detector.detect("notes.txt") == "text"
        assert detector.detect("Makefile") == "text"

    def test_extension_case_insensitive(self, detector):
        assert detector.detect("LEGACY.PY") == "python"

    def test_header_defaults_to_c(self, detector):
        assert detector.detect("util.h", "int add(int a, int b);\n") == "c"

    def test_header_with_cpp_markers(self, detector):
        content = "namespace geometry {\nclass Point {\n};\n}\n"
        assert detector.detect("point.h", content) == "cpp"

    def test_is_supported(self, detector):
        assert detector.is_supported("a.py")
        assert not detector.is_supported("a.txt")

    def test_supported_extensions(self):
        extensions = LanguageDetector.get_supported_extensions()
        assert ".js" in extensions
        assert ".java" in extensions

    def test_module_level_helper(self):
        assert detect_language("component.tsx") == "typescript"
