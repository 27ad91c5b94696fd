"""Tests for the resource diff module."""

from build_reconciler.manifest import (
    LABEL_MANAGED_BY,
    LABEL_ORGANIZATION,
    PolicyRule,
    RoleRef,
    Subject,
)
from build_reconciler.resource_diff import (
    equate_empty,
    extract_managed_labels,
    is_managed_label,
    labels_differ,
    normalize,
)


def test_managed_labels() -> None:
    """Test only labels owned by the library are extracted."""
    labels = {
        LABEL_MANAGED_BY: "build-reconciler",
        LABEL_ORGANIZATION: "acme",
        "team": "payments",
        "app.kubernetes.io/name": "cart",
    }
    assert extract_managed_labels(labels) == {
        LABEL_MANAGED_BY: "build-reconciler",
        LABEL_ORGANIZATION: "acme",
    }
    assert extract_managed_labels(None) == {}
    assert is_managed_label(LABEL_ORGANIZATION)
    assert not is_managed_label("team")


def test_labels_differ_ignores_external_labels() -> None:
    """Test labels added by other actors do not cause an update."""
    desired = {LABEL_ORGANIZATION: "acme"}
    current = {LABEL_ORGANIZATION: "acme", "team": "payments"}
    assert not labels_differ(current, desired)
    assert not labels_differ(desired, desired)
    assert labels_differ({LABEL_ORGANIZATION: "other"}, desired)
    assert labels_differ(None, desired)
    assert not labels_differ(None, {})


def test_equate_empty() -> None:
    """Test empty and absent values compare equal."""
    assert equate_empty(None, [])
    assert equate_empty({}, None)
    assert equate_empty({"a": []}, {})
    assert equate_empty({"a": {"b": None}}, {"a": {}})
    assert not equate_empty(["x"], [])
    assert not equate_empty({"a": 1}, {"a": 2})
    # Order of lists is significant
    assert not equate_empty(["a", "b"], ["b", "a"])


def test_equate_empty_dataclasses() -> None:
    """Test dataclasses are compared by their normalized fields."""
    assert equate_empty(
        Subject(kind="ServiceAccount", name="sa", namespace="ns"),
        Subject(kind="ServiceAccount", name="sa", namespace="ns", api_group=""),
    )
    assert not equate_empty(
        Subject(kind="ServiceAccount", name="sa", namespace="ns"),
        Subject(kind="ServiceAccount", name="sa", namespace="other"),
    )
    assert equate_empty(
        RoleRef(kind="Role", name="workflow-role"),
        RoleRef(kind="Role", name="workflow-role"),
    )
    assert equate_empty(
        [PolicyRule(api_groups=[""], resources=["pods"], verbs=["get"])],
        [PolicyRule(api_groups=[""], resources=["pods"], verbs=["get"])],
    )
    assert equate_empty([PolicyRule()], [PolicyRule(api_groups=[], verbs=[])])


def test_normalize_is_deterministic() -> None:
    """Test normalizing does not modify its input."""
    value = {"a": [], "b": {"c": None, "d": "e"}}
    assert normalize(value) == {"b": {"d": "e"}}
    assert normalize(value) == normalize(value)
    assert value == {"a": [], "b": {"c": None, "d": "e"}}
