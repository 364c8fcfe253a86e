import random

import pytest

from race.logic.exceptions import InvalidRosterSizeError, RoomFullError
from race.logic.players import CpuPlayer, HumanPlayer
from race.logic.settings import RaceSettings
from race.messaging.types import FinishMessage, StartMessage, StateMessage, WaitingMessage
from race.session.room import RaceRoom, RoomPhase
from race.tests.mocks import MockConnection


def _admit(room: RaceRoom, name: str, requested: int | None = None):
    return room.admit(name, MockConnection(room_id=room.room_id), requested)


def _two_player_room() -> tuple[RaceRoom, HumanPlayer, HumanPlayer]:
    room = RaceRoom(room_id="duel", settings=RaceSettings(roster_size=2), rng=random.Random(0))
    a, _ = _admit(room, "A", 2)
    b, _ = _admit(room, "B")
    return room, a, b


class TestAdmission:
    def test_first_admission_fixes_required_players(self, room):
        _admit(room, "Alice", 2)
        _admit(room, "Bob", 3)
        assert room.required_players == 2

    def test_required_players_defaults_to_roster_size(self, room):
        _admit(room, "Alice")
        assert room.required_players == 4

    def test_admission_broadcasts_waiting(self, room):
        _, messages = _admit(room, "Alice", 3)
        assert messages == [WaitingMessage(count=1, required=3)]
        assert room.phase is RoomPhase.WAITING
        assert room.started is False

    def test_reaching_threshold_pads_with_cpus_and_starts(self, room):
        _admit(room, "Alice", 2)
        _, messages = _admit(room, "Bob")

        assert [type(m) for m in messages] == [WaitingMessage, StartMessage]
        assert messages[0] == WaitingMessage(count=2, required=2)
        start = messages[1]
        assert [(p.name, p.is_cpu) for p in start.players] == [
            ("Alice", False),
            ("Bob", False),
            ("CPU1", True),
            ("CPU2", True),
        ]
        assert room.player_count == 4
        assert room.started is True
        assert room.phase is RoomPhase.IN_ROUND

    def test_single_player_room_starts_immediately(self, room):
        _, messages = _admit(room, "Solo", 1)
        assert isinstance(messages[-1], StartMessage)
        assert len(room.cpus) == 3

    def test_full_roster_of_humans_needs_no_cpus(self, room):
        for name in ("A", "B", "C"):
            _admit(room, name, 4)
        _, messages = _admit(room, "D")
        assert isinstance(messages[-1], StartMessage)
        assert room.cpus == []

    def test_admission_rejected_while_in_round(self, room):
        _admit(room, "Alice", 1)
        with pytest.raises(RoomFullError):
            _admit(room, "Late")
        assert room.player_count == 4

    def test_admission_rejected_after_finish(self):
        room, a, b = _two_player_room()
        a.position = 11
        room.submit_choice(b, 3)
        room.submit_choice(a, 1)
        assert room.phase is RoomPhase.FINISHED
        with pytest.raises(RoomFullError):
            _admit(room, "Late")

    def test_human_count_never_exceeds_required(self, room):
        _admit(room, "A", 3)
        _admit(room, "B")
        _admit(room, "C")
        for name in ("D", "E"):
            with pytest.raises(RoomFullError):
                _admit(room, name)
        assert len(room.humans) == 3

    def test_invalid_requested_players_rejected(self, room):
        with pytest.raises(InvalidRosterSizeError):
            _admit(room, "Alice", 5)
        assert room.required_players is None
        assert room.roster == []

    def test_duplicate_names_allowed(self, room):
        _admit(room, "Alice", 3)
        _admit(room, "Alice")
        assert room.player_names == ["Alice", "Alice"]


class TestRounds:
    def test_round_waits_for_every_human(self, room):
        alice, _ = _admit(room, "Alice", 2)
        bob, _ = _admit(room, "Bob")

        assert room.submit_choice(alice, 3) == []
        # CPUs picked while the round stayed open
        assert all(cpu.pending_choice in (1, 3, 5) for cpu in room.cpus)
        assert alice.pending_choice == 3
        assert bob.pending_choice is None

        messages = room.submit_choice(bob, 5)
        assert len(messages) == 1
        assert isinstance(messages[0], (StateMessage, FinishMessage))

    def test_state_lists_positions_in_roster_order(self, room):
        alice, _ = _admit(room, "Alice", 2)
        bob, _ = _admit(room, "Bob")
        room.submit_choice(alice, 1)
        (state,) = room.submit_choice(bob, 1)

        assert isinstance(state, StateMessage)
        assert [p.name for p in state.players] == ["Alice", "Bob", "CPU1", "CPU2"]
        assert [p.is_cpu for p in state.players] == [False, False, True, True]
        # Alice and Bob collided on 1
        assert state.players[0].pos == 0
        assert state.players[1].pos == 0

    def test_choices_cleared_after_resolution(self, room):
        alice, _ = _admit(room, "Alice", 2)
        bob, _ = _admit(room, "Bob")
        room.submit_choice(alice, 1)
        room.submit_choice(bob, 3)
        assert all(p.pending_choice is None for p in room.roster)

    def test_last_write_wins(self):
        room, a, b = _two_player_room()
        room.submit_choice(a, 1)
        room.submit_choice(a, 5)
        room.submit_choice(b, 3)
        assert a.position == 5
        assert b.position == 3

    @pytest.mark.parametrize("value", [2, 0, -1, 7, "3", None, True, 3.0])
    def test_invalid_choice_ignored(self, value):
        room, a, _ = _two_player_room()
        assert room.submit_choice(a, value) == []
        assert a.pending_choice is None

    def test_choice_ignored_before_start(self, room):
        alice, _ = _admit(room, "Alice", 2)
        assert room.submit_choice(alice, 3) == []
        assert alice.pending_choice is None

    def test_choice_from_removed_player_ignored(self):
        room, a, b = _two_player_room()
        room.disconnect(a)
        assert room.submit_choice(a, 3) == []

    def test_all_same_choice_repeats_round(self):
        room, a, b = _two_player_room()
        a.position, b.position = 4, 4
        room.submit_choice(a, 5)
        (state,) = room.submit_choice(b, 5)
        assert isinstance(state, StateMessage)
        assert [p.pos for p in state.players] == [4, 4]
        assert room.phase is RoomPhase.IN_ROUND

    def test_cpus_always_choose_before_gate(self, room):
        alice, _ = _admit(room, "Solo", 1)
        messages = room.submit_choice(alice, 5)
        # only human decided, so the round resolves right away
        assert len(messages) == 1
        assert isinstance(messages[0], (StateMessage, FinishMessage))


class TestFinish:
    def test_collision_then_win_scenario(self):
        room, a, b = _two_player_room()
        a.position, b.position = 9, 9

        room.submit_choice(a, 3)
        (state,) = room.submit_choice(b, 3)
        assert isinstance(state, StateMessage)
        assert [(p.name, p.pos) for p in state.players] == [("A", 9), ("B", 9)]

        room.submit_choice(a, 3)
        (finish,) = room.submit_choice(b, 1)
        assert isinstance(finish, FinishMessage)
        assert finish.to_wire() == {
            "type": "finish",
            "ranking": [
                {"rank": 1, "name": "A", "pos": 12, "isCPU": False},
                {"rank": 2, "name": "B", "pos": 10, "isCPU": False},
            ],
        }
        assert room.started is False
        assert room.phase is RoomPhase.FINISHED

    def test_overshoot_wins_exactly_at_goal(self):
        room, a, b = _two_player_room()
        a.position = 10
        room.submit_choice(a, 5)
        (finish,) = room.submit_choice(b, 1)
        assert finish.ranking[0].pos == 12

    def test_choices_ignored_after_finish(self):
        room, a, b = _two_player_room()
        a.position = 11
        room.submit_choice(a, 1)
        room.submit_choice(b, 3)
        assert room.submit_choice(a, 1) == []


class TestRematch:
    def _finished_room(self):
        room = RaceRoom(room_id="r", settings=RaceSettings(roster_size=3), rng=random.Random(0))
        a, _ = _admit(room, "A", 2)
        b, _ = _admit(room, "B")
        a.position = 11
        room.submit_choice(a, 1)
        room.submit_choice(b, 1)
        # A and B collided on 1; keep going until the round finishes
        while room.phase is not RoomPhase.FINISHED:
            room.submit_choice(a, 5)
            room.submit_choice(b, 3)
        return room, a, b

    def test_restarts_only_when_every_human_votes(self):
        room, a, b = self._finished_room()

        assert room.vote_rematch(a) == []
        assert room.phase is RoomPhase.FINISHED

        (start,) = room.vote_rematch(b)
        assert isinstance(start, StartMessage)
        assert room.started is True
        assert all(p.position == 0 for p in room.roster)
        assert [p.name for p in start.players] == ["A", "B", "CPU1"]

    def test_votes_reset_on_new_round(self):
        room, a, b = self._finished_room()
        room.vote_rematch(a)
        room.vote_rematch(b)
        assert a.rematch_vote is False
        assert b.rematch_vote is False
        assert all(cpu.rematch_vote for cpu in room.cpus)

    def test_redundant_vote_is_idempotent(self):
        room, a, _ = self._finished_room()
        room.vote_rematch(a)
        assert room.vote_rematch(a) == []
        assert room.phase is RoomPhase.FINISHED

    def test_vote_outside_finished_ignored(self):
        room, a, _ = _two_player_room()
        assert room.vote_rematch(a) == []
        assert a.rematch_vote is False


class TestDisconnect:
    def test_disconnect_aborts_round(self, room):
        alice, _ = _admit(room, "Alice", 2)
        bob, _ = _admit(room, "Bob")

        messages = room.disconnect(bob)

        assert messages == [WaitingMessage(count=3, required=2)]
        assert room.started is False
        assert room.phase is RoomPhase.WAITING
        assert room.player_names == ["Alice", "CPU1", "CPU2"]

    def test_disconnect_while_waiting(self, room):
        alice, _ = _admit(room, "Alice", 3)
        bob, _ = _admit(room, "Bob")
        messages = room.disconnect(alice)
        assert messages == [WaitingMessage(count=1, required=3)]
        assert room.player_names == ["Bob"]

    def test_room_with_only_cpus_is_empty(self, room):
        alice, _ = _admit(room, "Alice", 1)
        assert room.is_empty is False
        room.disconnect(alice)
        assert room.is_empty is True
        assert room.player_count == 3

    def test_disconnect_unknown_player_is_noop(self, room):
        _admit(room, "Alice", 3)
        stranger = CpuPlayer(name="CPU9")
        assert room.disconnect(stranger) == []

    def test_refill_after_disconnect_restarts(self, room):
        alice, _ = _admit(room, "Alice", 2)
        bob, _ = _admit(room, "Bob")
        room.disconnect(alice)

        carol, messages = _admit(room, "Carol")

        assert messages[0] == WaitingMessage(count=4, required=2)
        assert isinstance(messages[1], StartMessage)
        assert room.player_names == ["Bob", "CPU1", "CPU2", "Carol"]

    def test_refill_tops_up_missing_cpus_with_free_names(self, room):
        alice, _ = _admit(room, "Alice", 2)
        _admit(room, "Bob")
        room.disconnect(room.cpus[0])
        room.disconnect(alice)

        _admit(room, "Carol")
        assert room.player_names == ["Bob", "CPU2", "Carol", "CPU1"]
        assert room.player_count == 4

    def test_disconnect_after_finish_returns_to_waiting(self):
        room, a, b = _two_player_room()
        a.position = 11
        room.submit_choice(a, 1)
        room.submit_choice(b, 3)

        room.disconnect(b)
        assert room.phase is RoomPhase.WAITING
        assert room.vote_rematch(a) == []
