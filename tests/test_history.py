import itertools

import pytest

from deploymate.agents.history import Turn, sanitize

U = Turn.user
A = Turn.agent


def test_consecutive_user_turns_are_merged():
    assert sanitize([U("a"), U("b"), A("c")]) == [U("a\n\nb"), A("c")]


def test_consecutive_agent_turns_keep_the_last():
    assert sanitize([U("a"), A("b"), A("c")]) == [U("a"), A("c")]


def test_leading_agent_turn_is_dropped():
    assert sanitize([A("x"), U("a")]) == [U("a")]


def test_several_leading_agent_turns_are_dropped():
    assert sanitize([A("x"), A("y"), U("a"), A("b")]) == [U("a"), A("b")]


def test_blank_turns_are_dropped_before_repair():
    # Dropping the blank user turn makes the two agent turns adjacent.
    history = [U("a"), A("b"), U("   "), A("c"), U("")]
    assert sanitize(history) == [U("a"), A("c")]


def test_blank_turn_between_users_still_merges():
    assert sanitize([U("a"), A("\n\t"), U("b")]) == [U("a\n\nb")]


@pytest.mark.parametrize(
    "history",
    [[], [U("")], [A("only the agent")], [A("x"), A("y")], [U(" "), A("")]],
)
def test_histories_without_a_user_turn_sanitize_to_empty(history):
    assert sanitize(history) == []


def test_input_is_not_mutated():
    history = [U("a"), U("b"), A("c"), A("d")]
    snapshot = list(history)
    sanitize(history)
    assert history == snapshot


def test_already_valid_history_is_unchanged():
    history = [U("a"), A("b"), U("c"), A("d"), U("e")]
    assert sanitize(history) == history


def test_triple_user_merge_keeps_order():
    assert sanitize([U("1"), U("2"), U("3")]) == [U("1\n\n2\n\n3")]


def _all_histories(max_len: int = 5):
    turns = [U("a"), U("b"), U(" "), A("x"), A("y"), A("")]
    for length in range(max_len + 1):
        yield from itertools.product(turns, repeat=length)


def test_structural_invariants_hold_for_every_short_history():
    for history in _all_histories():
        result = sanitize(history)

        assert sanitize(result) == result
        assert not result or result[0].role == "user"
        assert all(a.role != b.role for a, b in zip(result, result[1:]))
        assert all(turn.content.strip() for turn in result)


def test_null_and_numeric_content_are_repaired_not_rejected():
    history = [
        Turn(role="user", content=None),
        Turn(role="assistant", content="How many replicas?"),
        Turn(role="user", content=3),
        Turn(role="assistant", content=None),
    ]
    assert sanitize(history) == [U("3")]
