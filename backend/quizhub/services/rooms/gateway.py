import logging
import threading
import time
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from quizhub.errors import InvalidTransition, QuizError, RoomNotFound, UnknownMember
from .lifecycle import RoomLifecycle, RoomState
from .locks import KeyedLocks
from .registry import RoomRegistry
from .scoreboard import ScoreBoard


def _run_inline(fn, *args):
    fn(*args)


class SessionGateway:
    """Coordinates real-time room events.

    Every mutating operation on a room runs under that room's lock and emits
    its broadcasts before releasing it, so all members of a room see events
    in the same order. Calls to the question oracle and the score persister
    happen outside any room lock.

    ``transport`` must provide ``to_room``, ``to_member``, ``enter_room`` and
    ``exit_room``. ``spawn(fn, *args)`` runs fire-and-forget work.
    """

    def __init__(self, transport, oracle, persister,
                 registry: Optional[RoomRegistry] = None,
                 scoreboard: Optional[ScoreBoard] = None,
                 lifecycle: Optional[RoomLifecycle] = None,
                 logger: Optional[logging.Logger] = None,
                 spawn: Callable = _run_inline,
                 sleep: Callable[[float], Any] = time.sleep,
                 clock: Callable[[], datetime] = datetime.now,
                 allow_repeat_answers: bool = True,
                 question_set_size: int = 10,
                 persist_attempts: int = 3,
                 persist_backoff: float = 0.5):
        self.transport = transport
        self.oracle = oracle
        self.persister = persister
        self.registry = registry or RoomRegistry()
        self.scoreboard = scoreboard or ScoreBoard()
        self.lifecycle = lifecycle or RoomLifecycle()
        self.logger = logger or logging.getLogger(__name__)
        self.allow_repeat_answers = allow_repeat_answers
        self.question_set_size = question_set_size
        self.persist_attempts = max(1, int(persist_attempts))
        self.persist_backoff = persist_backoff
        self._spawn = spawn
        self._sleep = sleep
        self._clock = clock
        self._locks = KeyedLocks()
        self._connected_lock = threading.Lock()
        self._connected = set()
        self._routes = {
            'connect': (self.on_connect, ()),
            'disconnect': (self.on_disconnect, ()),
            'join-room': (self.on_join_room, ('room_key',)),
            'leave-room': (self.on_leave_room, ('room_key',)),
            'start-game': (self.on_start_game, ('room_key',)),
            'answer-question': (self.on_answer, ('room_key', 'question_id', 'answer_index')),
            'send-message': (self.on_chat_message, ('room_key', 'text')),
            'finish-game': (self.on_finish_game, ('room_key',)),
            'reset-game': (self.on_reset_game, ('room_key',)),
        }

    @property
    def events(self):
        return tuple(self._routes)

    # ---- dispatch ----

    def dispatch(self, kind: str, identity: str, payload: Any = None) -> None:
        """Route one inbound event to its operation.

        Malformed payloads and QuizError failures are reported to the
        requester alone; nothing is broadcast for them.
        """
        route = self._routes.get(kind)
        if route is None:
            self._send_error(identity, 'bad_request', f'unknown event {kind}')
            return
        handler, required = route
        data = payload if isinstance(payload, dict) else {}
        try:
            kwargs = self._parse(kind, data, required)
        except ValueError as exc:
            self._send_error(identity, 'bad_request', str(exc))
            return
        try:
            handler(identity=identity, **kwargs)
        except QuizError as exc:
            self.logger.info(f"[rejected] event={kind} member={identity} code={exc.code} reason={exc.message}")
            self._send_error(identity, exc.code, exc.message)

    def _parse(self, kind: str, data: Dict[str, Any], required) -> Dict[str, Any]:
        kwargs = {}
        for field in required:
            value = data.get(field)
            if value is None or (isinstance(value, str) and not value.strip()):
                raise ValueError(f'{field} is required')
            kwargs[field] = value
        if 'room_key' in kwargs:
            kwargs['room_key'] = str(kwargs['room_key'])
        if kind == 'join-room':
            name = data.get('display_name')
            kwargs['display_name'] = str(name).strip() if name and str(name).strip() else None
        if kind == 'answer-question':
            kwargs['answer_index'] = self._parse_index(kwargs['answer_index'])
        if kind == 'send-message':
            kwargs['text'] = str(kwargs['text'])
        return kwargs

    @staticmethod
    def _parse_index(value) -> int:
        # bool is an int subclass; floats and "1.9" must not round to a valid option
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lstrip('-').isdigit():
            return int(value.strip())
        raise ValueError('answer_index must be an integer')

    # ---- connection ----

    def on_connect(self, identity: str) -> None:
        with self._connected_lock:
            self._connected.add(identity)
        self.logger.info(f"[connect] member={identity}")
        self.transport.to_member(identity, 'connected', {'id': identity, 'message': 'Connected'})

    def is_connected(self, identity: str) -> bool:
        with self._connected_lock:
            return identity in self._connected

    def on_disconnect(self, identity: str) -> None:
        with self._connected_lock:
            self._connected.discard(identity)
        self.logger.info(f"[disconnect] member={identity}")
        self._remove_member(identity)

    # ---- membership ----

    def on_join_room(self, identity: str, room_key: str, display_name: Optional[str] = None) -> None:
        display_name = display_name or f'Player_{identity[:4]}'
        with self._locks.locked(room_key):
            if not self.is_connected(identity):
                self.logger.info(f"[join-skip] room={room_key} member={identity} not connected")
                return
            if self.lifecycle.state_of(room_key) is RoomState.FINISHED:
                raise InvalidTransition(f'room {room_key} has finished its game')
            members = self.registry.join(room_key, identity, display_name)
            self.lifecycle.ensure(room_key)
            if not self.scoreboard.contains(room_key, identity):
                self.scoreboard.initialize(room_key, identity)
            self.transport.enter_room(identity, room_key)
            self.logger.info(f"[join] room={room_key} member={identity} name={display_name} size={len(members)}")
            self.transport.to_room(room_key, 'player-joined', self._members_payload(room_key, members))
            self.transport.to_room(room_key, 'message', {'room_key': room_key, 'text': f'{display_name} joined'})

    def on_leave_room(self, identity: str, room_key: str) -> None:
        if self.registry.room_of(identity) != room_key:
            raise RoomNotFound(f'not a member of room {room_key}')
        self._remove_member(identity)
        self.transport.to_member(identity, 'left', {'room_key': room_key})

    def _remove_member(self, identity: str) -> Optional[str]:
        room_key = self.registry.room_of(identity)
        while room_key is not None:
            with self._locks.locked(room_key):
                current = self.registry.room_of(identity)
                if current == room_key:
                    self._leave_locked(identity, room_key)
                    return room_key
            # Left or moved to another room while we waited for the lock.
            room_key = current
        return None

    def _leave_locked(self, identity: str, room_key: str) -> None:
        member = self.registry.member(room_key, identity)
        if member is not None:
            _, remaining = self.registry.leave(identity)
            self.scoreboard.remove(room_key, identity)
            self.transport.exit_room(identity, room_key)
            self.logger.info(f"[leave] room={room_key} member={identity} remaining={len(remaining)}")
            if remaining:
                self.transport.to_room(room_key, 'player-left', self._members_payload(room_key, remaining))
                self.transport.to_room(room_key, 'message', {'room_key': room_key, 'text': f'{member.display_name} left'})
            else:
                self.scoreboard.discard_room(room_key)
                self.lifecycle.discard(room_key)
                self.logger.info(f"[dispose] room={room_key}")

    # ---- game lifecycle ----

    def on_start_game(self, room_key: str, identity: str) -> None:
        self._require_member(room_key, identity)
        questions = []
        if self.lifecycle.state_of(room_key) is RoomState.WAITING:
            questions = self._fetch_questions(room_key)
        with self._locks.locked(room_key):
            self._require_member(room_key, identity)
            game = self.lifecycle.start(room_key)
            self.scoreboard.reset_all(room_key)
            self.logger.info(f"[start] room={room_key} game={game} by={identity} questions={len(questions)}")
            self.transport.to_room(room_key, 'game-started', {'room_key': room_key, 'questions': questions})

    def on_finish_game(self, room_key: str, identity: str) -> None:
        with self._locks.locked(room_key):
            self._require_member(room_key, identity)
            if not self.lifecycle.finish(room_key):
                return
            scores = self.scoreboard.snapshot(room_key)
            self.logger.info(f"[finish] room={room_key} by={identity} players={len(scores)}")
            self.transport.to_room(room_key, 'game-finished', {
                'room_key': room_key,
                'scores': self._scores_payload(room_key, scores),
            })
        for member_id, score in scores.items():
            self._spawn(self._persist, member_id, score, room_key)

    def on_reset_game(self, room_key: str, identity: str) -> None:
        with self._locks.locked(room_key):
            self._require_member(room_key, identity)
            self.lifecycle.reset(room_key)
            self.scoreboard.reset_all(room_key)
            self.logger.info(f"[reset] room={room_key} by={identity}")
            self.transport.to_room(room_key, 'game-reset', {
                'room_key': room_key,
                'scores': self._scores_payload(room_key, self.scoreboard.snapshot(room_key)),
            })

    # ---- answers & chat ----

    def on_answer(self, identity: str, room_key: str, question_id, answer_index: int) -> None:
        with self._locks.locked(room_key):
            if not self.registry.is_member(room_key, identity):
                raise RoomNotFound(f'not a member of room {room_key}')
            if not self.lifecycle.can_accept_answer(room_key):
                self._reject_answer(identity, room_key, question_id, 'not_in_progress')
                return
            if not self.allow_repeat_answers and not self.scoreboard.claim(room_key, identity, question_id):
                self._reject_answer(identity, room_key, question_id, 'already_answered')
                return
            game = self.lifecycle.game_number(room_key)

        try:
            correct_index = self.oracle.correct_answer_for(question_id)
        except Exception as exc:
            # Any oracle failure stays with this request; the claim is given back
            self.logger.warning(f"[oracle-error] room={room_key} question={question_id} error={exc!r}")
            self.scoreboard.release(room_key, identity, question_id)
            self._reject_answer(identity, room_key, question_id, 'oracle_unavailable')
            return
        if correct_index is None:
            self.scoreboard.release(room_key, identity, question_id)
            self._reject_answer(identity, room_key, question_id, 'unknown_question')
            return
        correct = int(correct_index) == answer_index

        with self._locks.locked(room_key):
            if not self.registry.is_member(room_key, identity):
                self.logger.info(f"[answer-discard] room={room_key} member={identity} left before scoring")
                return
            if self.lifecycle.game_number(room_key) != game or not self.lifecycle.can_accept_answer(room_key):
                self._reject_answer(identity, room_key, question_id, 'not_in_progress')
                return
            if correct:
                try:
                    score = self.scoreboard.increment(room_key, identity)
                except UnknownMember:
                    self.logger.info(f"[answer-discard] room={room_key} member={identity} no score entry")
                    return
                self.logger.info(f"[score] room={room_key} member={identity} question={question_id} score={score}")
                self.transport.to_room(room_key, 'update-score', self._scores_payload(room_key))
            self.transport.to_member(identity, 'answer-feedback', {
                'room_key': room_key,
                'question_id': question_id,
                'correct': correct,
                'message': 'Correct answer!' if correct else 'Wrong answer!',
            })

    def on_chat_message(self, identity: str, room_key: str, text: str) -> None:
        with self._locks.locked(room_key):
            member = self.registry.member(room_key, identity)
            if member is None:
                raise RoomNotFound(f'not a member of room {room_key}')
            self.transport.to_room(room_key, 'chat-message', {
                'room_key': room_key,
                'display_name': member.display_name,
                'text': text,
                'timestamp': self._clock().strftime('%H:%M:%S'),
            })

    # ---- reads ----

    def room_state(self, room_key: str) -> Optional[Dict[str, Any]]:
        with self._locks.locked(room_key):
            members = self.registry.members_of(room_key)
            if not members:
                return None
            state = self.lifecycle.state_of(room_key) or RoomState.WAITING
            return {
                'room_key': room_key,
                'state': state.value,
                'players': [m.to_dict() for m in members],
                'scores': self._scores_payload(room_key),
            }

    # ---- helpers ----

    def _require_member(self, room_key: str, identity: str) -> None:
        if room_key not in self.registry:
            raise RoomNotFound(f'room {room_key} has no members')
        if not self.registry.is_member(room_key, identity):
            raise RoomNotFound(f'not a member of room {room_key}')

    def _fetch_questions(self, room_key: str):
        try:
            return self.oracle.question_set(self.question_set_size)
        except Exception as exc:
            self.logger.warning(f"[oracle-error] room={room_key} question set unavailable: {exc!r}")
            return []

    def _persist(self, identity: str, score: int, room_key: str) -> bool:
        for attempt in range(1, self.persist_attempts + 1):
            try:
                self.persister.record(identity, score, room_key)
                self.logger.info(f"[persist] room={room_key} member={identity} score={score}")
                return True
            except Exception as exc:
                self.logger.warning(
                    f"[persist-retry] room={room_key} member={identity} attempt={attempt}/{self.persist_attempts} error={exc!r}"
                )
                if attempt < self.persist_attempts:
                    self._sleep(self.persist_backoff * attempt)
        self.logger.error(f"[persist-failed] room={room_key} member={identity} score={score}")
        return False

    def _members_payload(self, room_key, members):
        return {'room_key': room_key, 'players': [m.to_dict() for m in members]}

    def _scores_payload(self, room_key: str, scores: Optional[Dict[str, int]] = None):
        if scores is None:
            scores = self.scoreboard.snapshot(room_key)
        names = self.registry.display_names(room_key)
        return {
            member_id: {'score': score, 'display_name': names.get(member_id, 'Player')}
            for member_id, score in scores.items()
        }

    def _reject_answer(self, identity, room_key, question_id, reason: str) -> None:
        self.transport.to_member(identity, 'answer-rejected', {
            'room_key': room_key,
            'question_id': question_id,
            'reason': reason,
        })

    def _send_error(self, identity: str, code: str, message: str) -> None:
        self.transport.to_member(identity, 'error', {'code': code, 'message': message})
