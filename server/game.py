"""
Game logic for Equation Poker.

This module owns one session's authoritative state: players, deck, pot,
phase and turn. It validates every action against the current phase,
deals cards (including the multiply-card interrupt), advances turns and
phases, and hands the finished equation phase to the scoring resolver.

Equation Poker Rules Summary:
    - Every player starts a round with three operator cards: + - ÷
    - Preflop betting, then two number cards each, a betting round, two
      more number cards each, and a final betting round
    - Players then build equations from their cards aiming for 1 (small),
      20 (big) or both; closest wins, colors break ties
    - Folding down to one player, or running out of chips, ends things early

Phase Flow:
    WAITING -> PREFLOP -> DEALING1 -> BETTING1 -> DEALING2 -> BETTING2
            -> EQUATION -> ENDED
    A session restarts from ENDED back into PREFLOP (same roster and chips).

The game never touches the network. Anything the outside world should see
is emitted as an OutboundEvent through the emitter installed with
set_event_emitter().
"""

import copy
import logging
import random
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

import ai
import scoring
from actions import (
    BetAction,
    BetType,
    CallAction,
    DeclineSwapAction,
    FoldAction,
    GameAction,
    SelectBetTypeAction,
    SubmitEquationAction,
    SwapCardAction,
)
from cards import (
    Card,
    Deck,
    NumberCard,
    OperationCard,
    OperationType,
    STARTING_OPERATIONS,
    build_deck,
    is_operation,
    starting_operation_cards,
)
from constants import (
    DEALING1_TARGET,
    DEALING2_TARGET,
    MAX_DEAL_ATTEMPTS,
    MAX_NAME_LENGTH,
    MAX_PLAYERS,
    PRACTICE_BOT_ID,
    SPECTATOR_SUFFIX,
    STARTING_CHIPS,
)
from errors import DeckExhausted, InsufficientChips, InvalidAction, NotFound
from models import events
from models.events import OutboundEvent


logger = logging.getLogger(__name__)


class GamePhase(str, Enum):
    """
    Phases of an Equation Poker round, in their fixed order.

    Flow: WAITING -> PREFLOP -> DEALING1 -> BETTING1 -> DEALING2
          -> BETTING2 -> EQUATION -> ENDED
    """

    WAITING = "waiting"      # Lobby, waiting for players to join
    PREFLOP = "preflop"      # Betting before any number cards are dealt
    DEALING1 = "dealing1"    # Dealing up to 2 number cards each
    BETTING1 = "betting1"
    DEALING2 = "dealing2"    # Dealing up to 4 number cards each
    BETTING2 = "betting2"
    EQUATION = "equation"    # Choosing bet types and submitting equations
    ENDED = "ended"          # Round resolved, showing results

    @property
    def order(self) -> int:
        return PHASE_ORDER.index(self)


PHASE_ORDER: list[GamePhase] = list(GamePhase)

BETTING_PHASES = (GamePhase.PREFLOP, GamePhase.BETTING1, GamePhase.BETTING2)

# Number cards each contestant holds once the dealing phase completes
DEALING_TARGETS: dict[GamePhase, int] = {
    GamePhase.DEALING1: DEALING1_TARGET,
    GamePhase.DEALING2: DEALING2_TARGET,
}

# Where a completed betting round leads
AFTER_BETTING: dict[GamePhase, GamePhase] = {
    GamePhase.PREFLOP: GamePhase.DEALING1,
    GamePhase.BETTING1: GamePhase.DEALING2,
    GamePhase.BETTING2: GamePhase.EQUATION,
}

AFTER_DEALING: dict[GamePhase, GamePhase] = {
    GamePhase.DEALING1: GamePhase.BETTING1,
    GamePhase.DEALING2: GamePhase.BETTING2,
}


@dataclass
class Player:
    """
    A player in an Equation Poker session.

    Attributes:
        id: Unique identifier for the player.
        name: Display name.
        chips: Chip balance, carried across rounds.
        cards: The hand: number cards plus square-root and multiply cards
            picked up while dealing.
        operation_cards: Starting operators still held (+ - ÷ minus any
            given up for a multiply).
        bet: Chips put in during the current betting phase.
        bet_type: Target(s) chosen for the equation phase.
        submitted_equations: Equation strings by target ("small"/"big").
        is_folded: Out of the current round.
        is_active: Still taking part in the session (False when
            disconnected, eliminated or spectating).
        is_bot: Automated player.
        is_spectator: Joined after the game started; never plays.
        is_eliminated: Ran out of chips; out for the rest of the session.
        pending_swap: Must answer a multiply-card swap before dealing resumes.
        pending_multiply: The multiply card on offer while pending_swap.
        square_root_context: The previous card dealt to this player was a
            square root (one-card lookahead window).
        bot_profile: Name of the bot's personality profile.
    """

    id: str
    name: str
    chips: int = STARTING_CHIPS
    cards: list[Card] = field(default_factory=list)
    operation_cards: list[OperationCard] = field(default_factory=starting_operation_cards)
    bet: int = 0
    bet_type: Optional[BetType] = None
    submitted_equations: dict[str, str] = field(default_factory=dict)
    is_folded: bool = False
    is_active: bool = True
    is_bot: bool = False
    is_spectator: bool = False
    is_eliminated: bool = False
    pending_swap: bool = False
    pending_multiply: Optional[OperationCard] = None
    square_root_context: bool = False
    bot_profile: Optional[str] = None

    @property
    def is_contestant(self) -> bool:
        """Still in the current round: not folded and still active."""
        return not self.is_folded and self.is_active

    @property
    def number_cards(self) -> list[NumberCard]:
        return [c for c in self.cards if isinstance(c, NumberCard)]

    @property
    def has_square_root(self) -> bool:
        return any(is_operation(c, OperationType.SQUARE_ROOT) for c in self.cards)

    @property
    def has_submitted(self) -> bool:
        return bool(self.submitted_equations)

    def has_multiply(self) -> bool:
        """Holds a multiply card or has one on offer."""
        return self.pending_swap or any(is_operation(c, OperationType.MULTIPLY) for c in self.cards)

    def starting_operators(self) -> list[OperationType]:
        """Starting operators the player could still give up in a swap."""
        return [c.operation for c in self.operation_cards if c.operation in STARTING_OPERATIONS]

    def reset_for_round(self) -> None:
        """Clear per-round state. Chips and session status carry over."""
        self.cards = []
        self.operation_cards = starting_operation_cards()
        self.bet = 0
        self.bet_type = None
        self.submitted_equations = {}
        self.is_folded = self.is_spectator or self.is_eliminated
        self.pending_swap = False
        self.pending_multiply = None
        self.square_root_context = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "chips": self.chips,
            "cards": [c.to_dict() for c in self.cards],
            "operation_cards": [c.to_dict() for c in self.operation_cards],
            "bet": self.bet,
            "bet_type": self.bet_type.value if self.bet_type else None,
            "submitted_equations": dict(self.submitted_equations),
            "is_folded": self.is_folded,
            "is_active": self.is_active,
            "is_bot": self.is_bot,
            "is_spectator": self.is_spectator,
            "pending_swap": self.pending_swap,
            "has_square_root": self.has_square_root,
        }


@dataclass
class DealtCard:
    """A card drawn during the current dealing pass and what became of it."""

    player_id: str
    card: Card
    in_hand: bool = False
    # Starting operator given up for this card, with its former index
    swapped_out: Optional[OperationCard] = None
    swapped_index: int = 0


@dataclass
class Game:
    """
    Main game state and logic controller for one Equation Poker session.

    Manages the full session lifecycle including:
        - Player management (join, reconnect, spectators, practice bot)
        - Betting rounds, turn order and chip elimination
        - Dealing with the square-root and multiply interrupts
        - Equation submission and round resolution
        - Restarting a finished session into a new round

    Attributes:
        session_id: Identifier of the owning session.
        players: Seated players; order is turn order and tie-break order.
        deck: The current round's remaining cards.
        current_player_index: Index of the player whose action is awaited.
        pot: Chips wagered this round.
        current_bet: Bet level every contestant must match.
        phase: Current phase.
        round: Round counter, 0 until the first start.
        winners: Payee ids for the "small" and "big" targets.
        equation_results: Scored equation table from the last resolution.
        last_action: Most recent accepted action, for client display.
    """

    session_id: str
    players: list[Player] = field(default_factory=list)
    deck: Optional[Deck] = None
    current_player_index: Optional[int] = None
    pot: int = 0
    current_bet: int = 0
    phase: GamePhase = GamePhase.WAITING
    round: int = 0
    winners: dict[str, list[str]] = field(default_factory=lambda: {"small": [], "big": []})
    equation_results: Optional[list[dict]] = None
    last_action: Optional[dict] = None
    rng: random.Random = field(default_factory=random.Random, repr=False, compare=False)

    # Contestants who acted since the last raise in this betting phase
    _acted: set = field(default_factory=set, repr=False)
    # Every draw of the current dealing pass, in order
    _dealt_this_pass: list[DealtCard] = field(default_factory=list, repr=False)
    _event_emitter: Optional[Callable[[OutboundEvent], None]] = field(
        default=None, repr=False, compare=False
    )
    _sequence_num: int = field(default=0, repr=False, compare=False)

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def set_event_emitter(self, emitter: Callable[[OutboundEvent], None]) -> None:
        """
        Set callback for outbound events.

        Args:
            emitter: Callback receiving each OutboundEvent as it occurs.
        """
        self._event_emitter = emitter

    def _next_sequence(self) -> int:
        self._sequence_num += 1
        return self._sequence_num

    def _emit(self, event: OutboundEvent) -> None:
        if self._event_emitter is not None:
            self._event_emitter(event)

    def publish_state(self) -> None:
        """Emit a full snapshot to every participant."""
        self._emit(events.game_state(self.session_id, self._next_sequence(), self.get_state()))

    # -------------------------------------------------------------------------
    # Checkpointing
    # -------------------------------------------------------------------------

    def snapshot_state(self) -> dict:
        """Deep copy of all game state, for rolling back a failed action."""
        return copy.deepcopy(
            {k: v for k, v in self.__dict__.items() if k != "_event_emitter"}
        )

    def restore_state(self, saved: dict) -> None:
        """Roll back to a snapshot_state() copy."""
        self.__dict__.update(copy.deepcopy(saved))

    # -------------------------------------------------------------------------
    # Player Management
    # -------------------------------------------------------------------------

    def get_player(self, player_id: str) -> Optional[Player]:
        """
        Find a player by their ID.

        Args:
            player_id: The unique ID to search for.

        Returns:
            The Player if found, None otherwise.
        """
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def require_player(self, player_id: str) -> Player:
        player = self.get_player(player_id)
        if player is None:
            raise NotFound(f"Player {player_id} not found")
        return player

    def current_player(self) -> Optional[Player]:
        """Get the player whose action is awaited, if any."""
        if self.current_player_index is None or not self.players:
            return None
        return self.players[self.current_player_index]

    def contestants(self) -> list[Player]:
        """Players still in the current round, in seat order."""
        return [p for p in self.players if p.is_contestant]

    def seated_players(self) -> list[Player]:
        return [p for p in self.players if not p.is_spectator]

    def join(self, name: str, existing_player_id: Optional[str] = None) -> Player:
        """
        Add a player, reconnect a returning one, or seat a spectator.

        Args:
            name: Display name.
            existing_player_id: Id from an earlier join. If it matches a
                player with the same name, that player is reactivated.

        Returns:
            The joined (or reconnected) player.

        Raises:
            InvalidAction: If the name is blank or too long, or the table
                is full.
        """
        name = name.strip()
        if not name:
            raise InvalidAction("Player name is required")
        if len(name) > MAX_NAME_LENGTH:
            raise InvalidAction(f"Player name is longer than {MAX_NAME_LENGTH} characters")

        if existing_player_id:
            existing = self.get_player(existing_player_id)
            if existing is not None and existing.name == name:
                if not existing.is_eliminated and not existing.is_spectator:
                    existing.is_active = True
                logger.info(f"Player {name} ({existing.id}) reconnected to session {self.session_id}")
                self._record_action(existing, "reconnect")
                return existing

        if self.phase != GamePhase.WAITING:
            spectator = Player(
                id=str(uuid.uuid4()),
                name=name + SPECTATOR_SUFFIX,
                chips=0,
                is_folded=True,
                is_active=False,
                is_spectator=True,
            )
            self.players.append(spectator)
            logger.info(f"{name} joined session {self.session_id} as a spectator")
            self._record_action(spectator, "spectate")
            return spectator

        if len(self.seated_players()) >= MAX_PLAYERS:
            raise InvalidAction(f"Session is full ({MAX_PLAYERS} players)")

        player = Player(id=str(uuid.uuid4()), name=name)
        self.players.append(player)
        logger.info(f"Player {name} ({player.id}) joined session {self.session_id}")
        self._record_action(player, "join")
        return player

    def _add_practice_bot(self, opponent: Player) -> Player:
        profile = ai.pick_profile(self.rng)
        bot = Player(
            id=PRACTICE_BOT_ID,
            name=profile.name,
            chips=opponent.chips,
            is_bot=True,
            bot_profile=profile.name,
        )
        self.players.append(bot)
        logger.info(f"Added practice bot {bot.name} to session {self.session_id}")
        return bot

    # -------------------------------------------------------------------------
    # Game Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """
        Start the first round, or a new round after the last one ended.

        A lone human in the lobby gets a practice bot with matching chips.

        Raises:
            InvalidAction: If a round is in progress or fewer than two
                players can play.
        """
        if self.phase not in (GamePhase.WAITING, GamePhase.ENDED):
            raise InvalidAction(f"Cannot start while the game is in {self.phase.value}")

        eligible = [
            p for p in self.players
            if p.is_active and not p.is_spectator and not p.is_eliminated and p.chips > 0
        ]
        if not eligible:
            raise InvalidAction("No players available to start the game")
        if len(eligible) == 1 and self.phase == GamePhase.WAITING and not any(p.is_bot for p in self.players):
            eligible.append(self._add_practice_bot(eligible[0]))
        if len(eligible) < 2:
            raise InvalidAction("At least two players with chips are needed to start")

        self.round += 1
        self.deck = build_deck(self.rng)
        self.current_bet = 0
        self.winners = {"small": [], "big": []}
        self.equation_results = None
        for player in self.players:
            player.reset_for_round()
            if not player.is_active:
                player.is_folded = True

        logger.info(
            f"Session {self.session_id} round {self.round} started with "
            f"{len(self.contestants())} players"
        )
        self.last_action = {"player_id": None, "player_name": None, "action": "start", "round": self.round}
        self.phase = GamePhase.PREFLOP
        self._enter_betting()

    def perform_action(self, action: GameAction) -> None:
        """
        Validate and apply one player action, with all cascading effects.

        Args:
            action: A parsed GameAction.

        Raises:
            NotFound: Unknown player.
            InvalidAction: Action not legal for the phase, player or turn.
            InsufficientChips: Bet or call exceeds what is allowed.
            DeckExhausted: Dealing ran out of cards.
        """
        player = self.require_player(action.player_id)
        if player.is_spectator or player.is_eliminated:
            raise InvalidAction("Spectators and eliminated players cannot act")
        if not player.is_active:
            raise InvalidAction("Reconnect before acting")

        handler = self._action_handlers()[type(action)]
        handler(player, action)

    def _action_handlers(self) -> dict:
        return {
            BetAction: self._bet,
            CallAction: self._call,
            FoldAction: self._fold,
            SelectBetTypeAction: self._select_bet_type,
            SubmitEquationAction: self._submit_equation,
            SwapCardAction: self._swap_card,
            DeclineSwapAction: self._decline_swap,
        }

    def disconnect(self, player_id: str) -> None:
        """
        Mark a player inactive after their connection drops.

        Their hand and chips stay in place for reconnection. A pending swap
        is declined, the turn moves on if it was theirs, and the round ends
        if only one contestant is left.
        """
        player = self.require_player(player_id)
        if not player.is_active:
            return

        was_current = self.current_player() is player
        had_pending_swap = player.pending_swap
        player.is_active = False
        player.pending_swap = False
        player.pending_multiply = None
        logger.info(f"Player {player.name} ({player.id}) disconnected from session {self.session_id}")
        self._record_action(player, "disconnect")

        if self.phase in (GamePhase.WAITING, GamePhase.ENDED):
            return
        if len(self.contestants()) <= 1:
            self._award_sole_survivor()
            return

        if self.phase in BETTING_PHASES and was_current:
            self._advance_turn()
        elif self.phase in DEALING_TARGETS and had_pending_swap:
            self._deal()
        elif self.phase == GamePhase.EQUATION:
            self._check_equation_complete()

    # -------------------------------------------------------------------------
    # Betting
    # -------------------------------------------------------------------------

    def _require_turn(self, player: Player, action: str) -> None:
        if self.phase not in BETTING_PHASES:
            raise InvalidAction(f"Cannot {action} during {self.phase.value}")
        if self.current_player() is not player:
            raise InvalidAction("Not your turn")

    def _enter_betting(self) -> None:
        """Open a betting phase: bets reset and the first contestant acts."""
        self.current_bet = 0
        for player in self.players:
            player.bet = 0
        self._acted = set()
        self.current_player_index = self._first_contestant_index()

    def _first_contestant_index(self) -> Optional[int]:
        for i, player in enumerate(self.players):
            if player.is_contestant:
                return i
        return None

    def bet_limit(self) -> int:
        """
        Highest bet level anyone may raise to right now.

        Capped by every contestant's ability to call, so nobody can be
        bet out of the round.
        """
        return min(p.bet + p.chips for p in self.contestants())

    def _bet(self, player: Player, action: BetAction) -> None:
        self._require_turn(player, "bet")
        amount = action.amount
        if amount <= self.current_bet:
            raise InvalidAction(f"Bet must be more than the current bet of {self.current_bet}")
        increment = amount - player.bet
        if increment > player.chips:
            raise InsufficientChips(f"Bet of {amount} needs {increment} chips but you have {player.chips}")
        limit = self.bet_limit()
        if amount > limit:
            raise InsufficientChips(f"Bet cannot exceed {limit}, the most every player can match")

        player.chips -= increment
        player.bet = amount
        self.pot += increment
        self.current_bet = amount
        self._acted = {player.id}
        logger.debug(f"{player.name} bets {amount} (pot {self.pot})")
        self._record_action(player, "bet", amount=amount)
        self._after_wager(player)

    def _call(self, player: Player, action: CallAction) -> None:
        self._require_turn(player, "call")
        owed = self.current_bet - player.bet
        if owed > player.chips:
            raise InsufficientChips(f"Calling needs {owed} chips but you have {player.chips}")

        player.chips -= owed
        player.bet = self.current_bet
        self.pot += owed
        self._acted.add(player.id)
        logger.debug(f"{player.name} calls {owed} (pot {self.pot})")
        self._record_action(player, "call", amount=owed)
        self._after_wager(player)

    def _fold(self, player: Player, action: FoldAction) -> None:
        self._require_turn(player, "fold")
        player.is_folded = True
        logger.debug(f"{player.name} folds")
        self._record_action(player, "fold")

        if len(self.contestants()) <= 1:
            self._award_sole_survivor()
            return
        self._advance_turn()

    def _after_wager(self, player: Player) -> None:
        if player.chips == 0:
            player.is_folded = True
            player.is_active = False
            player.is_eliminated = True
            logger.info(f"{player.name} is out of chips and eliminated")

        if len(self.contestants()) <= 1:
            self._award_sole_survivor()
            return
        self._advance_turn()

    def _betting_complete(self) -> bool:
        return all(
            p.id in self._acted and p.bet == self.current_bet
            for p in self.contestants()
        )

    def _advance_turn(self) -> None:
        """Pass the turn to the next contestant, or close the betting round."""
        if self._betting_complete():
            self._complete_betting_round()
            return

        count = len(self.players)
        start = self.current_player_index if self.current_player_index is not None else -1
        for step in range(1, count + 1):
            index = (start + step) % count
            if self.players[index].is_contestant:
                self.current_player_index = index
                return

    def _complete_betting_round(self) -> None:
        next_phase = AFTER_BETTING[self.phase]
        logger.info(f"Session {self.session_id}: {self.phase.value} complete, pot {self.pot}")
        self.phase = next_phase

        if next_phase == GamePhase.EQUATION:
            self.current_player_index = self._first_contestant_index()
            return

        self.current_player_index = None
        self._dealt_this_pass = []
        self._deal()

    # -------------------------------------------------------------------------
    # Dealing
    # -------------------------------------------------------------------------

    def swap_pending_player(self) -> Optional[Player]:
        for player in self.players:
            if player.pending_swap:
                return player
        return None

    def _deal(self) -> None:
        """
        Deal the current dealing phase, resuming where a swap interrupt
        left off.

        Each contestant draws until they hold the phase's number-card
        count. A human drawing a multiply halts dealing for the whole
        table until they answer the swap.

        Raises:
            DeckExhausted: If the deck runs dry or the deal can't be fixed.
        """
        target = DEALING_TARGETS[self.phase]

        for _attempt in range(MAX_DEAL_ATTEMPTS):
            for player in self.contestants():
                while len(player.number_cards) < target:
                    self._deal_card(player, self.deck.draw())
                    if player.pending_swap:
                        logger.debug(f"Dealing paused for {player.name}'s swap decision")
                        return

            short = [p for p in self.contestants() if len(p.number_cards) != target]
            if not short:
                self._finish_dealing()
                return

            logger.error(
                f"Session {self.session_id}: {', '.join(p.name for p in short)} "
                f"hold the wrong number of cards after {self.phase.value}, redealing"
            )
            self._undo_pass(short)

        raise DeckExhausted(f"Could not complete {self.phase.value} after {MAX_DEAL_ATTEMPTS} attempts")

    def _deal_card(self, player: Player, card: Card) -> None:
        in_sqrt_window = player.square_root_context
        player.square_root_context = False
        dealt = DealtCard(player.id, card)
        self._dealt_this_pass.append(dealt)

        if isinstance(card, NumberCard):
            player.cards.append(card)
            dealt.in_hand = True
            return

        if card.operation == OperationType.SQUARE_ROOT:
            player.cards.append(card)
            dealt.in_hand = True
            player.square_root_context = True
            return

        if card.operation != OperationType.MULTIPLY:
            player.cards.append(card)
            dealt.in_hand = True
            return

        if in_sqrt_window or player.has_multiply():
            logger.debug(f"Discarding multiply drawn by {player.name}")
            return

        if player.is_bot:
            operator = ai.choose_swap(player.starting_operators(), self.rng)
            self._exchange_operator(player, operator, dealt)
            logger.debug(f"Bot {player.name} swapped {operator.value} for multiply")
            return

        player.pending_swap = True
        player.pending_multiply = card
        self._emit(events.swap_required(
            self.session_id,
            self._next_sequence(),
            player_id=player.id,
            player_name=player.name,
            available_cards=[c.to_dict() for c in player.operation_cards],
            multiply_card=card.to_dict(),
        ))

    def _exchange_operator(self, player: Player, operator: OperationType, dealt: DealtCard) -> None:
        for i, held in enumerate(player.operation_cards):
            if held.operation == operator:
                dealt.swapped_out = player.operation_cards.pop(i)
                dealt.swapped_index = i
                break
        player.cards.append(dealt.card)
        dealt.in_hand = True

    def _undo_pass(self, players: list[Player]) -> None:
        """
        Take back what `players` received this pass and return every card
        they drew to the bottom of the deck.

        Only draws from this pass are reversed; cards and swaps from
        earlier passes stay as they are.
        """
        by_id = {p.id: p for p in players}
        undone = [d for d in self._dealt_this_pass if d.player_id in by_id]
        for dealt in reversed(undone):
            player = by_id[dealt.player_id]
            if dealt.in_hand:
                # Identity, not equality: an equal card may be from an earlier pass
                for i in range(len(player.cards) - 1, -1, -1):
                    if player.cards[i] is dealt.card:
                        del player.cards[i]
                        break
            if dealt.swapped_out is not None:
                player.operation_cards.insert(dealt.swapped_index, dealt.swapped_out)
            player.square_root_context = False
        self.deck.return_to_front([d.card for d in undone])
        self._dealt_this_pass = [d for d in self._dealt_this_pass if d.player_id not in by_id]

    def _finish_dealing(self) -> None:
        next_phase = AFTER_DEALING[self.phase]
        logger.info(f"Session {self.session_id}: {self.phase.value} complete")
        self._dealt_this_pass = []
        self.phase = next_phase
        self._enter_betting()

    def _require_pending_swap(self, player: Player) -> None:
        if not player.pending_swap:
            raise InvalidAction("No card swap is pending for you")

    def _pending_draw(self, player: Player) -> DealtCard:
        for dealt in reversed(self._dealt_this_pass):
            if dealt.player_id == player.id and dealt.card is player.pending_multiply:
                return dealt
        return DealtCard(player.id, player.pending_multiply)

    def _swap_card(self, player: Player, action: SwapCardAction) -> None:
        self._require_pending_swap(player)
        if action.operation not in player.starting_operators():
            raise InvalidAction(f"You don't hold a {action.operation.value} card to swap")

        dealt = self._pending_draw(player)
        player.pending_swap = False
        player.pending_multiply = None
        self._exchange_operator(player, action.operation, dealt)
        logger.debug(f"{player.name} swapped {action.operation.value} for multiply")
        self._record_action(player, "swap_card", operation=action.operation.value)
        self._deal()

    def _decline_swap(self, player: Player, action: DeclineSwapAction) -> None:
        self._require_pending_swap(player)
        player.pending_swap = False
        player.pending_multiply = None
        logger.debug(f"{player.name} declined the multiply card")
        self._record_action(player, "decline_swap")
        self._deal()

    # -------------------------------------------------------------------------
    # Equation Phase
    # -------------------------------------------------------------------------

    def _require_equation_phase(self, player: Player, action: str) -> None:
        if self.phase != GamePhase.EQUATION:
            raise InvalidAction(f"Cannot {action} during {self.phase.value}")
        if not player.is_contestant:
            raise InvalidAction("You are not in this hand")

    def _select_bet_type(self, player: Player, action: SelectBetTypeAction) -> None:
        self._require_equation_phase(player, "select a bet type")
        if player.has_submitted:
            raise InvalidAction("Bet type is locked once equations are submitted")
        player.bet_type = action.bet_type
        logger.debug(f"{player.name} plays for {action.bet_type.value}")
        self._record_action(player, "select_bet_type", bet_type=action.bet_type.value)

    def _submit_equation(self, player: Player, action: SubmitEquationAction) -> None:
        self._require_equation_phase(player, "submit equations")
        if player.bet_type is None:
            raise InvalidAction("Select a bet type before submitting equations")
        if player.has_submitted:
            raise InvalidAction("Equations already submitted this round")

        required = set(player.bet_type.targets)
        provided = action.equations.provided()
        if provided != required:
            raise InvalidAction(
                f"Bet type {player.bet_type.value} requires exactly the "
                f"{' and '.join(sorted(required))} equation(s)"
            )

        player.submitted_equations = {t: action.equations.get(t) for t in sorted(required)}
        logger.debug(f"{player.name} submitted {player.submitted_equations}")
        self._record_action(player, "submit_equation")
        self._check_equation_complete()

    def _check_equation_complete(self) -> None:
        if all(p.bet_type is not None and p.has_submitted for p in self.contestants()):
            self._resolve()

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------

    def _resolve(self) -> None:
        """Score the equations, pay the pot out and end the round."""
        resolution = scoring.resolve(self.contestants(), self.pot)
        for player_id, amount in resolution.payouts.items():
            self.require_player(player_id).chips += amount

        logger.info(
            f"Session {self.session_id} round {self.round} resolved: pot {self.pot}, "
            f"payouts {resolution.payouts}"
        )
        self.winners = resolution.winners
        self.equation_results = [r.to_dict() for r in resolution.equation_results]
        self.pot = 0
        self._end_round()

    def _award_sole_survivor(self) -> None:
        """One contestant (or none) left: they take the whole pot."""
        survivors = self.contestants()
        if survivors:
            winner = survivors[0]
            winner.chips += self.pot
            self.winners = {"small": [winner.id], "big": [winner.id]}
            logger.info(f"{winner.name} is the last player standing and takes {self.pot}")
            self.pot = 0
        else:
            logger.warning(f"Session {self.session_id}: no contestants left, pot of {self.pot} carries over")
        self._end_round()

    def _end_round(self) -> None:
        for player in self.players:
            player.pending_swap = False
            player.pending_multiply = None
            player.square_root_context = False
        self.current_player_index = None
        self.phase = GamePhase.ENDED

    # -------------------------------------------------------------------------
    # Bots
    # -------------------------------------------------------------------------

    def bots_to_act(self) -> list[Player]:
        """Automated players whose action the game is waiting on."""
        if self.phase in BETTING_PHASES:
            current = self.current_player()
            if current is not None and current.is_bot and current.is_contestant:
                return [current]
            return []
        if self.phase == GamePhase.EQUATION:
            return [p for p in self.contestants() if p.is_bot and not p.has_submitted]
        return []

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    def _record_action(self, player: Player, action: str, **details) -> None:
        self.last_action = {
            "player_id": player.id,
            "player_name": player.name,
            "action": action,
            **details,
        }

    def get_state(self) -> dict:
        """
        Get the full session state for clients.

        Everything in the session is visible except the order of the
        remaining deck, which is reported as a count only.
        """
        current = self.current_player()
        return {
            "id": self.session_id,
            "phase": self.phase.value,
            "round": self.round,
            "pot": self.pot,
            "current_bet": self.current_bet,
            "current_player": current.id if current else None,
            "winners": {k: list(v) for k, v in self.winners.items()},
            "equation_results": self.equation_results,
            "last_action": self.last_action,
            "deck_remaining": self.deck.cards_remaining() if self.deck else 0,
            "players": [p.to_dict() for p in self.players],
        }
