"""Unit tests for chunk context analysis."""

import pytest

from analysis.context import ContextAnalyzer
from tests.fixtures.chunks import make_chunk


class TestContextAnalyzer:
    """Test cases for ContextAnalyzer."""

    @pytest.fixture
    def analyzer(self):
        return ContextAnalyzer()

    @pytest.mark.parametrize("path,expected", [
        ('tests/test_api.py', 'test'),
        ('src/controllers/user.js', 'presentation'),
        ('src/services/billing.js', 'service'),
        ('src/repository/orders.js', 'data'),
        ('src/utils/strings.js', 'infrastructure'),
        ('config/settings.js', 'configuration'),
    ])
    def test_layer_from_path(self, path, expected):
        assert ContextAnalyzer.architectural_layer('return 1;', path) == expected

    def test_layer_from_content(self):
        assert ContextAnalyzer.architectural_layer('res.send(response);', 'lib/x.js') == 'presentation'
        assert ContextAnalyzer.architectural_layer('db.query(sql);', 'lib/x.js') == 'data'
        assert ContextAnalyzer.architectural_layer('return 1;', 'lib/x.js') == 'business'

    def test_framework_context(self):
        react = 'import React, { useState } from "react";'
        assert ContextAnalyzer.framework_context(react) == ['React']
        spring = '@RestController\npublic class Api {}'
        assert ContextAnalyzer.framework_context(spring) == ['Spring Boot']
        assert ContextAnalyzer.framework_context('return 1;') == []

    def test_business_context(self):
        assert ContextAnalyzer.business_context('cart.items.push(item);', 'lib/x.js') == 'E-commerce'
        assert ContextAnalyzer.business_context('return 1;', 'src/auth/login.js') == 'User Management'
        assert ContextAnalyzer.business_context('return 1;', 'lib/x.js') is None

    def test_surrounding_context(self, analyzer):
        lines = [f"l{i}" for i in range(10)]
        assert analyzer.surrounding_context(lines, 4, 5) == 'Before:\nl1\nl2\nl3\nAfter:\nl6\nl7\nl8'
        assert analyzer.surrounding_context(lines, 0, 9) == ''

    def test_analyze(self, analyzer):
        chunk = make_chunk('b\nc', 'src/x.js', 1)

        context = analyzer.analyze(chunk, 'a\nb\nc\nd', [chunk.id, 'other'])

        assert context.surrounding_context == 'Before:\na\nAfter:\nd'
        assert context.file_context.total_lines == 4
        assert context.file_context.file_size == 7
        assert context.file_context.sibling_chunks == ['other']
        assert context.architectural_layer == 'business'
        assert context.to_dict()['framework_context'] == []
