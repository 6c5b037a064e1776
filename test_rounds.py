import threading
from datetime import timedelta, timezone

from sqlalchemy.exc import OperationalError

from fantasy_cricket.database import LEAGUE_WRITE_LOCK
from fantasy_cricket.errors import ErrorKind, RejectReason
from fantasy_cricket.models import as_utc
from fantasy_cricket.rounds import RoundState


def test_sequence_defaults_to_next_number(service, admin, clock):
    first = service.create_round(admin, "Round 1", clock.now + timedelta(days=1)).data
    second = service.create_round(admin, "Round 2", clock.now + timedelta(days=8)).data
    assert (first['sequence'], second['sequence']) == (1, 2)
    assert first['state'] == RoundState.SCHEDULED.value


def test_duplicate_round_name(service, admin, clock):
    service.create_round(admin, "Round 1", clock.now)
    result = service.create_round(admin, "Round 1", clock.now)
    assert result.error == ErrorKind.CONFLICT


def test_blank_round_name(service, admin, clock):
    result = service.create_round(admin, "  ", clock.now)
    assert result.reason == RejectReason.INVALID_INPUT


def test_state_transitions(service, admin, make_round, clock):
    r1 = make_round("Round 1", lockout_in=timedelta(hours=2))
    r2 = make_round("Round 2", lockout_in=timedelta(days=7), start=False)

    def states():
        return {r['id']: r['state'] for r in service.list_rounds().data}

    assert states() == {r1: "open", r2: "scheduled"}
    clock.advance(hours=2)
    assert states() == {r1: "locked", r2: "scheduled"}

    service.start_round(admin, r2)
    assert states() == {r1: "settled", r2: "open"}


def test_only_one_active_round(service, repo, make_round):
    make_round("Round 1")
    r2 = make_round("Round 2")
    assert [r.id for r in repo.active_rounds()] == [r2]


def test_settled_round_cannot_restart(service, admin, make_round):
    r1 = make_round("Round 1")
    make_round("Round 2")
    result = service.start_round(admin, r1)
    assert result.error == ErrorKind.CONFLICT


def test_rollover_moves_points_to_totals(service, admin, repo, make_player, make_round):
    r1 = make_round("Round 1")
    p1 = make_player("Batter")
    service.record_stats(admin, p1, r1, {'runs': 60, 'fours': 4, 'sixes': 1, 'catches': 1})

    r2 = make_round("Round 2")
    player = repo.get_player(p1)
    assert (player.total_points, player.current_round_points) == (82, 0)
    assert all(e.rolled_up_at is not None for e in repo.stat_entries_for(p1, r1))

    # Second start with no new stats changes nothing
    assert service.start_round(admin, r2).ok
    player = repo.get_player(p1)
    assert (player.total_points, player.current_round_points) == (82, 0)


def test_rolled_entries_not_counted_again(service, admin, repo, make_player, make_round):
    r1 = make_round("Round 1")
    p1 = make_player("Batter")
    service.record_stats(admin, p1, r1, {'runs': 20})
    service.start_round(admin, r1)  # restart the active round
    service.record_stats(admin, p1, r1, {'runs': 5})

    player = repo.get_player(p1)
    assert (player.total_points, player.current_round_points) == (20, 5)


def test_current_status_counts_down_then_locks(service, repo, make_round, clock):
    r1 = make_round("Round 1", lockout_in=timedelta(minutes=30))

    status = service.current_round_status().data
    assert status['id'] == r1
    assert status['state'] == "open"
    assert status['time_until_lockout_ms'] == 30 * 60 * 1000
    assert not status['is_locked']

    clock.advance(minutes=45)
    status = service.current_round_status().data
    assert status['state'] == "locked"
    assert status['is_locked']
    assert status['time_until_lockout_ms'] == 0
    assert repo.get_round(r1).is_locked


def test_no_active_round(service):
    result = service.current_round_status()
    assert result.ok
    assert result.data is None


def test_only_admin_manages_rounds(service, make_user, clock):
    user = make_user("carol")
    assert service.create_round(user, "Round 1", clock.now).error == ErrorKind.FORBIDDEN


def test_offset_lockout_stored_as_utc(service, admin, clock):
    ist = timezone(timedelta(hours=5, minutes=30))
    lockout = (clock.now + timedelta(hours=1)).astimezone(ist)
    created = service.create_round(admin, "Round 1", lockout).data
    assert as_utc(created['lockout_time']) == clock.now + timedelta(hours=1)
    assert as_utc(created['lockout_time']).hour == 13


def test_naive_lockout_read_as_utc(service, admin, clock):
    naive = (clock.now + timedelta(minutes=10)).replace(tzinfo=None)
    round_id = service.create_round(admin, "Round 1", naive).data['id']
    service.start_round(admin, round_id)
    assert service.current_round_status().data['time_until_lockout_ms'] == 10 * 60 * 1000


def test_failed_round_start_changes_nothing(service, admin, session, repo, make_player, make_round, monkeypatch):
    r1 = make_round("Round 1")
    p1 = make_player("Batter")
    service.record_stats(admin, p1, r1, {'runs': 20})
    r2 = make_round("Round 2", start=False)

    def failing_commit():
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    monkeypatch.setattr(session, "commit", failing_commit)
    result = service.start_round(admin, r2)
    monkeypatch.undo()

    assert result.error == ErrorKind.FAILURE
    player = repo.get_player(p1)
    assert (player.total_points, player.current_round_points) == (0, 20)
    assert all(e.rolled_up_at is None for e in repo.stat_entries_for_player(p1))
    assert [r.id for r in repo.active_rounds()] == [r1]


def test_round_start_holds_league_lock(service, admin, make_round, monkeypatch):
    make_round("Round 1")
    r2 = make_round("Round 2", start=False)
    acquired_elsewhere = []
    rollup_players = service.repo.players_with_round_points

    def observed():
        # Another thread must not get in while points are being folded
        other = threading.Thread(target=lambda: acquired_elsewhere.append(LEAGUE_WRITE_LOCK.acquire(blocking=False)))
        other.start()
        other.join()
        return rollup_players()

    monkeypatch.setattr(service.repo, "players_with_round_points", observed)
    assert service.start_round(admin, r2).ok
    assert acquired_elsewhere == [False]
