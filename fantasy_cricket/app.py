from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from sqlmodel import Session

from player_score_calculator import CricketScoreCalculator

from .database import create_db_and_tables, get_session
from .errors import ErrorKind, OperationResult
from .logging_config import setup_logging
from .models import StatLine, utcnow
from .rounds import Clock
from .services import STANDARD, Identity, LeagueService

app = FastAPI(title="Fantasy Cricket League")

# Enable CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.LOCKED: 423,
    ErrorKind.FAILURE: 500,
}


@app.on_event("startup")
def on_startup():
    setup_logging()
    create_db_and_tables()


# --- Dependencies ---

def get_clock() -> Clock:
    return utcnow


def get_service(session: Session = Depends(get_session), clock: Clock = Depends(get_clock)) -> LeagueService:
    return LeagueService(session, clock=clock)


def get_identity(
    x_user_id: Optional[int] = Header(default=None),
    x_user_role: str = Header(default=STANDARD),
) -> Identity:
    """Identity is established upstream; the proxy forwards it in headers."""
    if x_user_id is None:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return Identity(user_id=x_user_id, role=x_user_role)


def respond(result: OperationResult):
    body = jsonable_encoder(result.to_dict())
    if not result.ok:
        raise HTTPException(status_code=STATUS_BY_KIND[result.error], detail=body)
    return body


# --- Request bodies ---

class RegisterRequest(BaseModel):
    username: str
    email: str
    is_admin: bool = False


class AccountUpdate(BaseModel):
    username: Optional[str] = None
    email: Optional[str] = None


class PlayerCreate(BaseModel):
    name: str
    position: str
    team: str = ""
    base_price: Optional[int] = None


class MatchCreate(BaseModel):
    match_name: str
    date: datetime
    team1: str
    team2: str


class BuyRequest(BaseModel):
    player_id: int
    as_substitute: bool = False


class PlayerRef(BaseModel):
    player_id: int


class SubstituteRequest(BaseModel):
    main_player_id: int
    sub_player_id: int


class RoundCreate(BaseModel):
    name: str
    lockout_time: datetime
    sequence: Optional[int] = None


class BonusRuleCreate(BaseModel):
    name: str
    bonus_points: int
    description: str = ""
    target_positions: Optional[List[str]] = None
    conditions: Dict[str, Any] = {}


class MultiplierSet(BaseModel):
    player_id: int
    multiplier: float


class StatsSubmit(BaseModel):
    player_id: int
    match_id: Optional[int] = None
    stats: Dict[str, Any]


class H2HCreate(BaseModel):
    user1_id: int
    user2_id: int
    round_id: int
    name: Optional[str] = None


class ScorePreview(BaseModel):
    position: str
    stats: StatLine


# --- Scoring ---

@app.post("/api/calculate")
def calculate_points(request: ScorePreview):
    calculator = CricketScoreCalculator()
    try:
        position = calculator.normalize_position(request.position)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return calculator.get_score_breakdown(request.stats, position)


# --- Accounts ---

@app.post("/api/users")
def register_user(request: RegisterRequest, service: LeagueService = Depends(get_service)):
    return respond(service.register_user(request.username, request.email, request.is_admin))


@app.patch("/api/users/me")
def update_account(
    request: AccountUpdate,
    identity: Identity = Depends(get_identity),
    service: LeagueService = Depends(get_service),
):
    return respond(service.update_account(identity, request.username, request.email))


@app.get("/api/users/{user_id}")
def read_user(user_id: int, service: LeagueService = Depends(get_service)):
    return respond(service.get_user(user_id))


# --- Players and matches ---

@app.post("/api/players")
def create_player(
    request: PlayerCreate,
    identity: Identity = Depends(get_identity),
    service: LeagueService = Depends(get_service),
):
    return respond(service.create_player(identity, request.name, request.position, request.team, request.base_price))


@app.get("/api/players")
def read_players(position: Optional[str] = None, service: LeagueService = Depends(get_service)):
    return respond(service.list_players(position))


@app.get("/api/players/{player_id}/stats")
def read_player_stats(player_id: int, service: LeagueService = Depends(get_service)):
    return respond(service.player_stat_history(player_id))


@app.post("/api/matches")
def create_match(
    request: MatchCreate,
    identity: Identity = Depends(get_identity),
    service: LeagueService = Depends(get_service),
):
    return respond(service.create_match(identity, request.match_name, request.date, request.team1, request.team2))


@app.get("/api/matches")
def read_matches(service: LeagueService = Depends(get_service)):
    return respond(service.list_matches())


# --- Team ---

@app.get("/api/teams/{user_id}")
def read_team(user_id: int, service: LeagueService = Depends(get_service)):
    return respond(service.team_view(user_id))


@app.post("/api/team/buy")
def buy_player(
    request: BuyRequest,
    identity: Identity = Depends(get_identity),
    service: LeagueService = Depends(get_service),
):
    return respond(service.buy_player(identity, request.player_id, request.as_substitute))


@app.post("/api/team/sell")
def sell_player(
    request: PlayerRef,
    identity: Identity = Depends(get_identity),
    service: LeagueService = Depends(get_service),
):
    return respond(service.sell_player(identity, request.player_id))


@app.post("/api/team/captain")
def set_captain(
    request: PlayerRef,
    identity: Identity = Depends(get_identity),
    service: LeagueService = Depends(get_service),
):
    return respond(service.set_captain(identity, request.player_id))


@app.post("/api/team/substitute")
def substitute(
    request: SubstituteRequest,
    identity: Identity = Depends(get_identity),
    service: LeagueService = Depends(get_service),
):
    return respond(service.substitute(identity, request.main_player_id, request.sub_player_id))


# --- Rounds ---

@app.post("/api/rounds")
def create_round(
    request: RoundCreate,
    identity: Identity = Depends(get_identity),
    service: LeagueService = Depends(get_service),
):
    return respond(service.create_round(identity, request.name, request.lockout_time, request.sequence))


@app.get("/api/rounds")
def read_rounds(service: LeagueService = Depends(get_service)):
    return respond(service.list_rounds())


@app.get("/api/rounds/current")
def read_current_round(service: LeagueService = Depends(get_service)):
    return respond(service.current_round_status())


@app.post("/api/rounds/{round_id}/start")
def start_round(
    round_id: int,
    identity: Identity = Depends(get_identity),
    service: LeagueService = Depends(get_service),
):
    return respond(service.start_round(identity, round_id))


@app.post("/api/rounds/{round_id}/stats")
def record_stats(
    round_id: int,
    request: StatsSubmit,
    identity: Identity = Depends(get_identity),
    service: LeagueService = Depends(get_service),
):
    return respond(service.record_stats(identity, request.player_id, round_id, request.stats, request.match_id))


@app.post("/api/rounds/{round_id}/bonus-rules")
def create_bonus_rule(
    round_id: int,
    request: BonusRuleCreate,
    identity: Identity = Depends(get_identity),
    service: LeagueService = Depends(get_service),
):
    return respond(service.create_bonus_rule(
        identity,
        round_id,
        request.name,
        request.bonus_points,
        request.target_positions,
        request.conditions,
        request.description,
    ))


@app.get("/api/rounds/{round_id}/bonus-rules")
def read_bonus_rules(round_id: int, service: LeagueService = Depends(get_service)):
    return respond(service.list_bonus_rules(round_id))


@app.delete("/api/bonus-rules/{rule_id}")
def delete_bonus_rule(
    rule_id: int,
    identity: Identity = Depends(get_identity),
    service: LeagueService = Depends(get_service),
):
    return respond(service.delete_bonus_rule(identity, rule_id))


@app.put("/api/rounds/{round_id}/multipliers")
def set_round_multiplier(
    round_id: int,
    request: MultiplierSet,
    identity: Identity = Depends(get_identity),
    service: LeagueService = Depends(get_service),
):
    return respond(service.set_round_multiplier(identity, round_id, request.player_id, request.multiplier))


@app.get("/api/rounds/{round_id}/multipliers")
def read_round_multipliers(round_id: int, service: LeagueService = Depends(get_service)):
    return respond(service.list_round_multipliers(round_id))


# --- Standings ---

@app.get("/api/leaderboard")
def read_leaderboard(service: LeagueService = Depends(get_service)):
    return respond(service.leaderboard())


@app.post("/api/h2h")
def create_h2h_matchup(
    request: H2HCreate,
    identity: Identity = Depends(get_identity),
    service: LeagueService = Depends(get_service),
):
    return respond(service.create_h2h_matchup(
        identity, request.user1_id, request.user2_id, request.round_id, request.name
    ))


@app.get("/api/h2h")
def read_h2h_matchups(round_id: Optional[int] = None, service: LeagueService = Depends(get_service)):
    return respond(service.list_h2h_matchups(round_id))
