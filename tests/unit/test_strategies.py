"""Unit tests for the chunking strategies and their selector."""

import pytest

from chunking.config import ChunkingConfig
from chunking.models import split_lines
from chunking.strategies import (
    ContextAwareChunkingStrategy,
    HierarchicalChunkingStrategy,
    SemanticChunkingStrategy,
    StrategyName,
    StrategySelector,
)
from chunking.strategies.context_aware import ContextualNode, infer_file_domain, infer_node_domain
from chunking.strategies.hierarchical import ScopeTree, identify_scope
from chunking.strategies.selector import default_strategies
from chunking.structural_parser import SemanticNode
from tests.fixtures.sample_code import (
    SAMPLE_JAVA_NESTED,
    SAMPLE_JS_CALLS,
    SAMPLE_JS_SERVICE,
    plain_text,
)

BRANCHY_FUNCTION = '''function big() {
  if (a) { x(); }
  if (b) { y(); }

  if (c) { z(); }
  if (d) { w(); }

  return 1;
}'''


class TestStrategyName:
    def test_parse(self):
        assert StrategyName.parse('semantic') is StrategyName.SEMANTIC
        assert StrategyName.parse('contextAware') is StrategyName.CONTEXT_AWARE
        assert StrategyName.parse('context-aware') is StrategyName.CONTEXT_AWARE
        assert StrategyName.parse('Context_Aware') is StrategyName.CONTEXT_AWARE
        assert StrategyName.parse('bogus') is None


class TestSemanticChunkingStrategy:
    """Test cases for SemanticChunkingStrategy."""

    @pytest.fixture
    def strategy(self):
        return SemanticChunkingStrategy()

    def test_applicability(self, strategy):
        assert strategy.is_applicable('javascript', SAMPLE_JS_CALLS)
        assert not strategy.is_applicable('text', plain_text(10))
        assert not strategy.is_applicable('java', 'int x = 1;\n')

    def test_one_chunk_per_declaration(self, strategy):
        chunks = strategy.chunk(SAMPLE_JS_CALLS, 'src/calls.js', 'snap')

        assert [c.id for c in chunks] == ['snap_calls.js_0-2', 'snap_calls.js_4-6']
        assert [c.symbols for c in chunks] == [['helper'], ['main']]
        assert all(c.metadata.semantic_type == 'function' for c in chunks)
        assert all(c.language == 'javascript' for c in chunks)
        assert chunks[0].context.architectural_layer == 'unknown'
        assert chunks[0].context.file_context.total_lines == len(split_lines(SAMPLE_JS_CALLS))

    def test_class_semantic_type(self, strategy):
        chunks = strategy.chunk(SAMPLE_JAVA_NESTED, 'src/Outer.java', 'snap')
        assert len(chunks) == 1
        assert chunks[0].metadata.semantic_type == 'class'
        assert chunks[0].symbols == ['Outer']

    def test_complex_node_is_split(self):
        strategy = SemanticChunkingStrategy(min_chunk_size=2, complexity_threshold=1)
        chunks = strategy.chunk(BRANCHY_FUNCTION, 'src/big.js', 'snap')

        assert [c.symbols[0] for c in chunks] == ['big_part_1', 'big_part_2', 'big_part_3']
        assert [(c.start_line, c.end_line) for c in chunks] == [(0, 2), (3, 5), (6, 8)]

    def test_file_without_declarations_uses_blocks(self, strategy):
        content = '\n'.join(f"x{i} = {i}" for i in range(60))
        chunks = strategy.chunk(content, 'script.py', 'snap')
        assert [(c.start_line, c.end_line) for c in chunks] == [(0, 49), (50, 59)]
        assert all(c.metadata.semantic_type == 'module' for c in chunks)

    def test_window_node_shares_overlap(self):
        strategy = SemanticChunkingStrategy(max_chunk_size=12, overlap=3)
        node = SemanticNode('function', 'run', 5, 29)

        windows = strategy.window_node(node)

        assert [(w.start_line, w.end_line) for w in windows] == [(5, 16), (14, 25), (23, 29)]
        assert [w.name for w in windows] == ['run_part_1', 'run_part_2', 'run_part_3']


class TestHierarchicalChunkingStrategy:
    """Test cases for HierarchicalChunkingStrategy."""

    @pytest.fixture
    def strategy(self):
        return HierarchicalChunkingStrategy()

    def test_applicability(self, strategy):
        assert strategy.is_applicable('java', SAMPLE_JAVA_NESTED)
        assert not strategy.is_applicable('javascript', SAMPLE_JS_CALLS)
        assert not strategy.is_applicable('go', SAMPLE_JAVA_NESTED)

    def test_python_nesting_applicability(self, strategy):
        content = 'class A:\n    class B:\n        def f(self):\n            pass\n'
        assert strategy.is_applicable('python', content)

    def test_identify_scope(self):
        assert identify_scope('public class Outer {', 'java') == ('class', 'Outer')
        assert identify_scope('    void run() {', 'java') == ('method', 'run')
        assert identify_scope('    if (x) {', 'java') is None
        assert identify_scope('async def fetch(url):', 'python') == ('function', 'fetch')

    def test_scope_tree(self):
        tree = ScopeTree.parse(split_lines(SAMPLE_JAVA_NESTED), 'java')
        order = tree.flatten()

        records = [tree[handle] for handle in order]
        assert [(r.name, r.start_line, r.end_line, r.level) for r in records] == [
            ('Outer', 0, 8, 0),
            ('Inner', 3, 7, 1),
            ('run', 4, 6, 2),
        ]
        assert records[1].parent == order[0]

    def test_parent_child_relationships(self, strategy):
        chunks = strategy.chunk(SAMPLE_JAVA_NESTED, 'src/Outer.java', 'snap')
        outer, inner, run = chunks

        assert outer.id == 'snap_Outer.java_0-8_L0'
        assert inner.id == 'snap_Outer.java_3-7_L1'
        assert run.id == 'snap_Outer.java_4-6_L2'

        assert [(r.type, r.target_chunk_id) for r in outer.relationships] == [('uses', inner.id)]
        assert ('extends', outer.id) in [(r.type, r.target_chunk_id) for r in inner.relationships]
        assert ('uses', run.id) in [(r.type, r.target_chunk_id) for r in inner.relationships]
        assert all(r.metadata.source == 'ast' for c in chunks for r in c.relationships)

        assert outer.metadata.semantic_type == 'class'
        assert run.metadata.semantic_type == 'function'
        assert 'Composite' in outer.metadata.design_patterns
        assert 'Parent: Outer (class)' in inner.context.surrounding_context


class TestContextAwareChunkingStrategy:
    """Test cases for ContextAwareChunkingStrategy."""

    @pytest.fixture
    def strategy(self):
        return ContextAwareChunkingStrategy()

    def test_applicability(self, strategy):
        assert strategy.is_applicable('javascript', SAMPLE_JS_SERVICE)
        assert not strategy.is_applicable('text', SAMPLE_JS_SERVICE)

    def test_signal_count(self):
        lines = split_lines(SAMPLE_JS_SERVICE)
        assert ContextAwareChunkingStrategy.contextual_signal_count(lines, 'javascript') == 4

    def test_dependency_overlap_and_edges(self, strategy):
        helper, main = strategy.chunk(SAMPLE_JS_CALLS, 'src/calls.js', 'snap')

        assert (helper.start_line, helper.end_line) == (0, 3)
        assert (main.start_line, main.end_line) == (3, 6)

        calls = [r for r in main.relationships if r.type == 'calls']
        assert len(calls) == 1
        assert calls[0].target_chunk_id == helper.id
        assert calls[0].strength > 0.7
        assert main.id in helper.metadata.dependents

    def test_shared_dependency_bonus_is_capped(self):
        dependencies = ['db', 'cache', 'queue', 'mailer', 'logger']
        node = ContextualNode(SemanticNode('function', 'a', 0, 2), '', dependencies=dependencies)
        other = ContextualNode(SemanticNode('function', 'b', 300, 302), '', dependencies=dependencies)

        strength = ContextAwareChunkingStrategy.dependency_strength(node, other)

        assert strength == pytest.approx(0.3)

    def test_domains(self):
        assert infer_node_domain('checkoutCart', 'return cart.total;') == 'E-commerce'
        assert infer_node_domain('chargeCard', 'return fee;') == 'Financial'
        assert infer_node_domain('helper', 'return 1;') is None
        assert infer_file_domain('send(email)', 'src/notify.js') == 'Communication'


class TestStrategySelector:
    """Test cases for StrategySelector."""

    @pytest.fixture
    def selector(self):
        return StrategySelector()

    def test_default_order(self, selector):
        assert [s.name for s in selector.strategies] == [
            StrategyName.SEMANTIC, StrategyName.HIERARCHICAL, StrategyName.CONTEXT_AWARE,
        ]

    def test_first_applicable(self, selector):
        strategy = selector.applicable('javascript', SAMPLE_JS_CALLS)
        assert strategy.name is StrategyName.SEMANTIC

    def test_preferred_strategy(self, selector):
        strategy = selector.applicable('java', SAMPLE_JAVA_NESTED, 'hierarchical')
        assert strategy.name is StrategyName.HIERARCHICAL

    def test_preferred_not_applicable(self, selector):
        strategy = selector.applicable('javascript', SAMPLE_JS_CALLS, StrategyName.HIERARCHICAL)
        assert strategy.name is StrategyName.SEMANTIC

    def test_unknown_preferred(self, selector, caplog):
        strategy = selector.applicable('javascript', SAMPLE_JS_CALLS, 'bogus')
        assert strategy.name is StrategyName.SEMANTIC
        assert 'bogus' in caplog.text

    def test_nothing_applicable(self, selector):
        assert selector.applicable('text', plain_text(5)) is None
        assert selector.select('text', plain_text(5)).name is StrategyName.SEMANTIC

    def test_register_replaces_in_place(self, selector):
        replacement = SemanticChunkingStrategy(max_chunk_size=50)
        selector.register(replacement)
        assert selector.strategies[0] is replacement
        assert selector.get('semantic') is replacement

    def test_default_strategies_follow_config(self):
        config = ChunkingConfig(chunk_size=40, chunk_overlap=8, use_ast_parsers=False)

        semantic, _, context_aware = default_strategies(config)

        assert semantic.max_chunk_size == 40
        assert semantic.overlap == 8
        assert not semantic.prefer_ast
        assert not context_aware.prefer_ast
        assert StrategySelector(config=config).get('semantic').max_chunk_size == 40
