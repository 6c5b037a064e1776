from datetime import datetime, timedelta, timezone

from fantasy_cricket.errors import ErrorKind, RejectReason
from fantasy_cricket.models import as_utc


def test_register_grants_starting_budget(service):
    result = service.register_user("alice", "alice@example.com")
    assert result.ok
    assert result.data['budget'] == 1_000_000
    assert result.data['is_admin'] is False


def test_duplicate_registration(service):
    service.register_user("alice", "alice@example.com")
    assert service.register_user("alice", "other@example.com").error == ErrorKind.CONFLICT
    assert service.register_user("alice2", "alice@example.com").error == ErrorKind.CONFLICT


def test_update_account(service, make_user):
    alice = make_user("alice")
    make_user("bob")

    assert service.update_account(alice, username="bob").error == ErrorKind.CONFLICT
    assert service.update_account(alice, email="bob@example.com").error == ErrorKind.CONFLICT

    result = service.update_account(alice, username="alice_w", email="alice@example.com")
    assert result.ok
    assert service.get_user(alice.user_id).data['username'] == "alice_w"


def test_get_missing_user(service):
    assert service.get_user(404).error == ErrorKind.NOT_FOUND


def test_create_player_normalizes_position(service, admin):
    result = service.create_player(admin, "Keeper", "wk", team="India")
    assert result.ok
    assert result.data['position'] == "Wicket-keeper"
    assert result.data['current_price'] == 100_000


def test_create_player_price_floor(service, admin):
    result = service.create_player(admin, "Rookie", "Bowler", base_price=20_000)
    assert result.data['base_price'] == 20_000
    assert result.data['current_price'] == 50_000


def test_create_player_rejects_bad_input(service, admin, make_user):
    assert service.create_player(admin, "X", "Goalkeeper").reason == RejectReason.INVALID_INPUT
    assert service.create_player(admin, "", "Batsman").reason == RejectReason.INVALID_INPUT
    assert service.create_player(make_user("eve"), "X", "Batsman").error == ErrorKind.FORBIDDEN


def test_list_players_by_position(service, make_player):
    make_player("A", "Batsman")
    make_player("B", "Bowler")
    make_player("C", "Bowler")
    assert [p['name'] for p in service.list_players("Bowler").data] == ["B", "C"]
    assert len(service.list_players().data) == 3


def test_bonus_rule_lifecycle(service, admin, open_round):
    created = service.create_bonus_rule(admin, open_round, "Fifty club", 5, None, {'min_runs': 50})
    assert created.ok
    assert created.data['target_positions'] == ["All"]
    assert created.data['conditions'] == {'min_runs': 50}

    assert len(service.list_bonus_rules(open_round).data) == 1
    assert service.delete_bonus_rule(admin, created.data['id']).ok
    assert service.list_bonus_rules(open_round).data == []
    assert service.delete_bonus_rule(admin, created.data['id']).error == ErrorKind.NOT_FOUND


def test_bonus_rule_validation(service, admin, open_round):
    unknown_key = service.create_bonus_rule(admin, open_round, "Bad", 5, None, {'min_maidens': 1})
    negative = service.create_bonus_rule(admin, open_round, "Bad", 5, None, {'min_runs': -1})
    no_targets = service.create_bonus_rule(admin, open_round, "Bad", 5, [], {})
    bad_target = service.create_bonus_rule(admin, open_round, "Bad", 5, ["Umpire"], {})
    for result in (unknown_key, negative, no_targets, bad_target):
        assert result.reason == RejectReason.INVALID_INPUT
    assert service.create_bonus_rule(admin, 999, "Bad", 5).error == ErrorKind.NOT_FOUND


def test_all_target_collapses(service, admin, open_round):
    result = service.create_bonus_rule(admin, open_round, "Everyone", 1, ["Bowler", "All"])
    assert result.data['target_positions'] == ["All"]


def test_round_multiplier_upsert_and_range(service, admin, make_player, open_round):
    p1 = make_player("A")
    assert service.set_round_multiplier(admin, open_round, p1, 1.5).ok
    assert service.set_round_multiplier(admin, open_round, p1, 3.0).ok

    rows = service.list_round_multipliers(open_round).data
    assert [(r['player_id'], r['multiplier']) for r in rows] == [(p1, 3.0)]

    assert service.set_round_multiplier(admin, open_round, p1, 0.05).reason == RejectReason.INVALID_INPUT
    assert service.set_round_multiplier(admin, open_round, p1, 10.5).reason == RejectReason.INVALID_INPUT
    assert service.set_round_multiplier(admin, open_round, 999, 2.0).error == ErrorKind.NOT_FOUND


def test_matches(service, admin, clock):
    assert service.create_match(admin, "IND vs AUS", clock.now, "India", "Australia").ok
    assert service.create_match(admin, "ENG vs NZ", clock.now, "England", "").reason == RejectReason.INVALID_INPUT
    assert [m['match_name'] for m in service.list_matches().data] == ["IND vs AUS"]


def test_result_to_dict(service):
    result = service.get_user(404)
    assert result.to_dict() == {'ok': False, 'message': "User 404 not found", 'error': "not_found"}


def test_timestamps_are_utc(service, admin):
    ist = timezone(timedelta(hours=5, minutes=30))
    match = service.create_match(admin, "IND vs AUS", datetime(2025, 3, 1, 19, 30, tzinfo=ist), "India", "Australia")
    assert match.ok
    assert as_utc(match.data['date']) == datetime(2025, 3, 1, 14, 0, tzinfo=timezone.utc)

    user = service.register_user("frank", "frank@example.com").data
    assert user['created_at'].utcoffset() == timedelta(0)
