import pytest

from startrail.engine import board


@pytest.mark.parametrize("start", [0, 3, 12, 24])
@pytest.mark.parametrize("steps", [0, 1, 4, 7, 25, 31])
def test_move_wraps_and_lists_every_gate_crossed(start, steps):
    assert board.move(start, steps) == (start + steps) % board.TRACK_LENGTH

    expected = [(start + i) % 25 for i in range(1, steps + 1) if (start + i) % 25 in board.GATES]
    assert board.gates_crossed(start, steps) == expected


def test_gates_crossed_keeps_traversal_order_across_wraparound():
    assert board.gates_crossed(18, 9) == [20, 0]


def test_landing_exactly_on_a_gate_counts_but_starting_on_one_does_not():
    assert board.gates_crossed(3, 2) == [5]
    assert board.gates_crossed(5, 3) == []


def test_full_lap_crosses_each_gate_once():
    assert board.gates_crossed(2, 25) == [5, 10, 15, 20, 0]


def test_move_rejects_negative_steps():
    with pytest.raises(ValueError):
        board.move(3, -1)


def test_previous_gate_wraps_to_last_gate():
    assert board.previous_gate(0) == 20
    for gate in board.GATES:
        assert board.previous_gate(gate + 1) == gate
    assert board.previous_gate(7) == 5
    assert board.previous_gate(10) == 5


def test_move_back_stays_on_track():
    assert board.move_back(1, 3) == 23
    assert board.move_back(9, 3) == 6


def test_start_gate_round_robin():
    assert [board.start_gate(i) for i in range(7)] == [0, 5, 10, 15, 20, 0, 5]
