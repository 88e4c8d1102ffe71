"""Property-based tests for configuration deep merge.

Testing Configuration:
- Library: Hypothesis (Python)
- Minimum iterations: 100 per property test
"""

import copy

from hypothesis import given, settings, strategies as st

from issue_resolver.config.manager import deep_merge


keys = st.text(alphabet="abcdefgh", min_size=1, max_size=3)
leaves = st.one_of(
    st.integers(),
    st.booleans(),
    st.text(max_size=5),
    st.lists(st.integers(), max_size=3),
)
documents = st.recursive(
    leaves,
    lambda children: st.dictionaries(keys, children, max_size=4),
    max_leaves=12,
)
mappings = st.dictionaries(keys, documents, max_size=4)


@settings(max_examples=100)
@given(target=mappings, source=mappings)
def test_inputs_are_not_modified(target, source):
    target_before = copy.deepcopy(target)
    source_before = copy.deepcopy(source)

    deep_merge(target, source)

    assert target == target_before
    assert source == source_before


@settings(max_examples=100)
@given(target=mappings, source=mappings)
def test_source_values_win(target, source):
    """Every non-mapping value in the source appears unchanged in the result."""
    merged = deep_merge(target, source)

    def check(merged_node, source_node):
        for key, value in source_node.items():
            if isinstance(value, dict):
                check(merged_node[key], value)
            else:
                assert merged_node[key] == value

    check(merged, source)


@settings(max_examples=100)
@given(target=mappings, source=mappings)
def test_target_keys_survive(target, source):
    """Keys absent from the source keep their target values."""
    merged = deep_merge(target, source)

    for key, value in target.items():
        if key not in source:
            assert merged[key] == value


@settings(max_examples=100)
@given(target=mappings)
def test_merging_empty_source_is_identity(target):
    assert deep_merge(target, {}) == target


def test_nested_merge_example():
    assert deep_merge({"a": {"x": 1, "y": 2}}, {"a": {"y": 3}}) == {"a": {"x": 1, "y": 3}}


def test_lists_replace_wholesale():
    assert deep_merge({"a": [1, 2, 3]}, {"a": [4]}) == {"a": [4]}


def test_mapping_replaces_scalar():
    assert deep_merge({"a": 1}, {"a": {"b": 2}}) == {"a": {"b": 2}}
