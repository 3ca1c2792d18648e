import random
from collections import Counter
from types import SimpleNamespace

import pytest

from dicey.db_models import RoomStatus, TiebreakerKind
from dicey.errors import (
    AlreadyCompleted,
    AlreadyVoted,
    Forbidden,
    InvalidInput,
    NoTieToResolve,
    NotParticipant,
    OptionNotFound,
    SelfVoteForbidden,
    VotingNotActive,
)
from dicey.services import options, participants, rooms, voting


def _opts(*tallies):
    return [SimpleNamespace(id=i + 1, text=f"opt{i + 1}", votes=v) for i, v in enumerate(tallies)]


# ---------------- pure evaluation ----------------
def test_tie_between_top_tallies_excludes_lower():
    outcome = voting.evaluate(_opts(5, 5, 3))
    assert isinstance(outcome, voting.Tie)
    assert [o.id for o in outcome.options] == [1, 2]


def test_single_leader_wins():
    outcome = voting.evaluate(_opts(1, 3, 2))
    assert isinstance(outcome, voting.Winner)
    assert outcome.option.id == 2


def test_no_votes_is_undecided_not_a_tie():
    assert isinstance(voting.evaluate(_opts(0, 0, 0)), voting.Undecided)
    assert isinstance(voting.evaluate([]), voting.Undecided)


def test_rank_is_stable_for_equal_tallies():
    ranked = voting.rank(_opts(2, 4, 2, 4))
    assert [o.id for o in ranked] == [2, 4, 1, 3]


def test_draw_is_uniform_over_two_tied_options():
    rng = random.Random(20240501)
    trials = 20000
    counts = Counter(voting.draw(["A", "B"], rng) for _ in range(trials))
    assert abs(counts["A"] / trials - 0.5) < 0.02
    assert abs(counts["B"] / trials - 0.5) < 0.02


def test_draw_covers_every_candidate():
    rng = random.Random(7)
    seen = {voting.draw(["dice", "coin", "spinner"], rng) for _ in range(300)}
    assert seen == {"dice", "coin", "spinner"}
    with pytest.raises(ValueError):
        voting.draw([], rng)


# ---------------- votes ----------------
@pytest.fixture
def voting_room(db, make_user):
    alice, bob, carol = make_user("Alice"), make_user("Bob"), make_user("Carol")
    room = rooms.create_room(db, "Lunch", alice.id)
    rooms.join_room_by_code(db, room.code, bob.id)
    rooms.join_room_by_code(db, room.code, carol.id)
    tacos = options.add_option(db, room.id, "Tacos", alice.id)
    sushi = options.add_option(db, room.id, "Sushi", bob.id)
    return SimpleNamespace(room=room, alice=alice, bob=bob, carol=carol, tacos=tacos, sushi=sushi)


def test_vote_rejected_before_voting_starts(db, voting_room):
    v = voting_room
    with pytest.raises(VotingNotActive):
        voting.submit_vote(db, v.room.id, v.tacos.id, v.bob.id)


def test_vote_counts_once_and_marks_participant(db, voting_room):
    v = voting_room
    pizza = options.add_option(db, v.room.id, "Pizza", v.carol.id)
    rooms.advance_to_voting(db, v.room.code, v.alice.id)

    counted = voting.submit_vote(db, v.room.id, v.tacos.id, v.bob.id)
    assert counted.votes == 1
    assert voting.vote_status(db, v.room.id, v.bob.id) is True
    assert voting.vote_status(db, v.room.id, v.carol.id) is False

    with pytest.raises(AlreadyVoted):
        voting.submit_vote(db, v.room.id, pizza.id, v.bob.id)
    with pytest.raises(AlreadyVoted):
        voting.submit_vote(db, v.room.id, v.tacos.id, v.bob.id)
    tallies = {o.text: o.votes for o in options.list_options(db, v.room.id)}
    assert tallies == {"Tacos": 1, "Sushi": 0, "Pizza": 0}


def test_self_vote_always_rejected(db, voting_room):
    v = voting_room
    rooms.advance_to_voting(db, v.room.code, v.alice.id)
    with pytest.raises(SelfVoteForbidden):
        voting.submit_vote(db, v.room.id, v.tacos.id, v.alice.id)
    assert participants.get_participant(db, v.room.id, v.alice.id).has_voted is False


def test_vote_for_option_of_another_room(db, voting_room):
    v = voting_room
    other = rooms.create_room(db, "Other", v.bob.id)
    foreign = options.add_option(db, other.id, "Elsewhere", v.bob.id)
    rooms.advance_to_voting(db, v.room.code, v.alice.id)
    with pytest.raises(OptionNotFound):
        voting.submit_vote(db, v.room.id, foreign.id, v.carol.id)


def test_non_participant_cannot_vote(db, voting_room, make_user):
    v = voting_room
    stranger = make_user("Stranger")
    rooms.advance_to_voting(db, v.room.code, v.alice.id)
    with pytest.raises(NotParticipant):
        voting.submit_vote(db, v.room.id, v.tacos.id, stranger.id)


def test_full_participation_auto_completes_clean_winner(db, voting_room):
    v = voting_room
    rooms.advance_to_voting(db, v.room.code, v.alice.id)
    voting.submit_vote(db, v.room.id, v.sushi.id, v.alice.id)
    voting.submit_vote(db, v.room.id, v.tacos.id, v.bob.id)
    assert rooms.get_room(db, v.room.id).status == RoomStatus.VOTING

    voting.submit_vote(db, v.room.id, v.sushi.id, v.carol.id)
    room = rooms.get_room(db, v.room.id)
    assert room.status == RoomStatus.COMPLETED
    assert room.final_decision == "Sushi"
    assert room.tiebreaker is None

    with pytest.raises(VotingNotActive):
        voting.submit_vote(db, v.room.id, v.tacos.id, v.carol.id)


def test_full_participation_tie_waits_for_tiebreaker(db, voting_room):
    v = voting_room
    pizza = options.add_option(db, v.room.id, "Pizza", v.carol.id)
    rooms.advance_to_voting(db, v.room.code, v.alice.id)
    voting.submit_vote(db, v.room.id, v.sushi.id, v.alice.id)
    voting.submit_vote(db, v.room.id, pizza.id, v.bob.id)
    voting.submit_vote(db, v.room.id, v.tacos.id, v.carol.id)

    results = voting.get_results(db, v.room.id, v.bob.id)
    assert results.room.status == RoomStatus.VOTING
    assert isinstance(results.outcome, voting.Tie)
    assert {o.text for o in results.outcome.options} == {"Tacos", "Sushi", "Pizza"}


# ---------------- results and tiebreaks ----------------
def test_results_by_non_creator_do_not_close_voting(db, voting_room):
    v = voting_room
    rooms.advance_to_voting(db, v.room.code, v.alice.id)
    voting.submit_vote(db, v.room.id, v.tacos.id, v.bob.id)

    results = voting.get_results(db, v.room.id, v.bob.id)
    assert results.room.status == RoomStatus.VOTING
    assert isinstance(results.outcome, voting.Winner)
    assert [o.text for o in results.options] == ["Tacos", "Sushi"]


def test_scenario_b_creator_read_completes_clean_winner(db, make_user):
    alice = make_user("Alice")
    voters = [make_user(f"Voter{i}") for i in range(4)]
    room = rooms.create_room(db, "Dinner", alice.id)
    for voter in voters:
        rooms.join_room_by_code(db, room.code, voter.id)
    a = options.add_option(db, room.id, "A", alice.id)
    b = options.add_option(db, room.id, "B", alice.id)
    rooms.advance_to_voting(db, room.code, alice.id)

    for voter, choice in zip(voters, (a, a, a, b)):
        voting.submit_vote(db, room.id, choice.id, voter.id)

    results = voting.get_results(db, room.id, alice.id)
    assert results.room.status == RoomStatus.COMPLETED
    assert results.room.final_decision == "A"
    assert results.room.tiebreaker is None
    assert [(o.text, o.votes) for o in results.options] == [("A", 3), ("B", 1)]

    with pytest.raises(AlreadyCompleted):
        voting.resolve_tie(db, room.id, "coin", alice.id)


def test_scenario_a_tie_resolved_by_creator(db, make_user):
    from dicey.errors import InsufficientOptions

    alice, bob, carol = make_user("Alice"), make_user("Bob"), make_user("Carol")
    room = rooms.create_room(db, "Lunch", alice.id)
    rooms.join_room_by_code(db, room.code, bob.id)
    rooms.join_room_by_code(db, room.code, carol.id)
    a = options.add_option(db, room.id, "A", alice.id)
    with pytest.raises(InsufficientOptions):
        rooms.advance_to_voting(db, room.code, alice.id)
    b = options.add_option(db, room.id, "B", alice.id)
    rooms.advance_to_voting(db, room.code, alice.id)

    voting.submit_vote(db, room.id, a.id, bob.id)
    voting.submit_vote(db, room.id, b.id, carol.id)

    results = voting.get_results(db, room.id, alice.id)
    assert isinstance(results.outcome, voting.Tie)
    assert results.room.status == RoomStatus.VOTING

    with pytest.raises(Forbidden):
        voting.resolve_tie(db, room.id, "dice", bob.id)

    done = voting.resolve_tie(db, room.id, TiebreakerKind.DICE, alice.id, rng=random.Random(3))
    assert done.status == RoomStatus.COMPLETED
    assert done.final_decision in {"A", "B"}
    assert done.tiebreaker == TiebreakerKind.DICE
    assert done.resolved_at is not None


def test_resolve_tie_honours_client_pick_within_tied_set(db, make_user):
    alice, bob, carol, dave = (make_user(n) for n in ("Alice", "Bob", "Carol", "Dave"))
    room = rooms.create_room(db, "Trip", alice.id)
    for user in (bob, carol, dave):
        rooms.join_room_by_code(db, room.code, user.id)
    a = options.add_option(db, room.id, "Beach", alice.id)
    b = options.add_option(db, room.id, "Hills", alice.id)
    c = options.add_option(db, room.id, "City", alice.id)
    rooms.advance_to_voting(db, room.code, alice.id)
    voting.submit_vote(db, room.id, a.id, bob.id)
    voting.submit_vote(db, room.id, b.id, carol.id)

    with pytest.raises(OptionNotFound):
        voting.resolve_tie(db, room.id, "spinner", alice.id, option_id=c.id)
    with pytest.raises(InvalidInput):
        voting.resolve_tie(db, room.id, "roulette", alice.id)

    done = voting.resolve_tie(db, room.id, "spinner", alice.id, option_id=b.id)
    assert done.final_decision == "Hills"
    assert done.tiebreaker == TiebreakerKind.SPINNER


def test_resolve_tie_requires_a_tie(db, voting_room):
    v = voting_room
    rooms.advance_to_voting(db, v.room.code, v.alice.id)
    with pytest.raises(NoTieToResolve):
        voting.resolve_tie(db, v.room.id, "coin", v.alice.id)

    voting.submit_vote(db, v.room.id, v.tacos.id, v.bob.id)
    with pytest.raises(NoTieToResolve):
        voting.resolve_tie(db, v.room.id, "coin", v.alice.id)


def test_undecided_room_stays_open_on_creator_read(db, voting_room):
    v = voting_room
    rooms.advance_to_voting(db, v.room.code, v.alice.id)
    results = voting.get_results(db, v.room.id, v.alice.id)
    assert isinstance(results.outcome, voting.Undecided)
    assert results.room.status == RoomStatus.VOTING
