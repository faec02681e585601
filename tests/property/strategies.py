"""
Custom Hypothesis Strategies for Generic Nodes

Provides strategies for configuration trees and override paths.
"""
import string

from hypothesis import strategies as st

RESERVED_WORDS = {"true", "false", "null"}


# =============================================================================
# KEYS AND SCALARS
# =============================================================================

keys = st.text(alphabet=string.ascii_lowercase, min_size=1, max_size=8)

indices = st.integers(min_value=0, max_value=5)

scalars = st.one_of(
    st.none(),
    st.booleans(),
    st.integers(min_value=-10_000, max_value=10_000),
    st.text(alphabet=string.ascii_letters, max_size=10),
)


def override_scalars():
    """Scalars that survive the override grammar's typing unchanged."""
    words = st.text(alphabet=string.ascii_letters, max_size=10).filter(
        lambda s: s.lower() not in RESERVED_WORDS
    )
    return st.one_of(st.booleans(), st.integers(min_value=-10_000, max_value=10_000), words)


def render_scalar(value) -> str:
    """Render a scalar the way a user would type it in an override."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


# =============================================================================
# NODES
# =============================================================================

nodes = st.recursive(
    scalars,
    lambda children: st.one_of(
        st.lists(children, max_size=4),
        st.dictionaries(keys, children, max_size=4),
    ),
    max_leaves=20,
)

mappings = st.dictionaries(keys, nodes, max_size=5)


@st.composite
def override_paths(draw, max_depth: int = 5):
    """A path starting with a key; later segments are keys or indices."""
    segments = [draw(keys)]
    for _ in range(draw(st.integers(min_value=0, max_value=max_depth - 1))):
        segments.append(draw(st.one_of(keys, indices)))
    return tuple(segments)


def env_name(prefix: str, path) -> str:
    """The environment variable that addresses ``path``."""
    return "_".join([prefix.upper()] + [str(segment).upper() for segment in path])


def leaf_paths(node, prefix=()):
    """Map every path in ``node`` to the type found there."""
    found = {prefix: type(node)}
    if isinstance(node, dict):
        for key, value in node.items():
            found.update(leaf_paths(value, prefix + (key,)))
    elif isinstance(node, list):
        for index, value in enumerate(node):
            found.update(leaf_paths(value, prefix + (index,)))
    return found


def lookup(node, path):
    for segment in path:
        node = node[segment]
    return node
