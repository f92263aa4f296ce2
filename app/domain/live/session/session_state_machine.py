"""Session state machine for managing status transitions."""

from app.schemas import SessionStatus


class SessionStateMachine:
    """State machine for managing session status transitions.

    State flow with triggers:
    - SCHEDULED (session row inserted) -> ACTIVE (LiveKit room created) | ERROR | ENDED
    - ACTIVE -> ENDED (owner delete, room_finished webhook or reconciliation sweep)
    - ENDED -> ENDED is an idempotent no-op
    - ERROR is terminal

    Detailed triggers:
    1. SCHEDULED: Set when the session is inserted via create_session()
    2. ACTIVE: Set when LiveKit confirms room creation inside create_session()
    3. ERROR: Set when LiveKit room creation fails
    4. ENDED: Set by delete_session(), the room_finished webhook or the sweeper
    """

    TRANSITIONS: dict[SessionStatus, set[SessionStatus]] = {
        SessionStatus.SCHEDULED: {
            SessionStatus.ACTIVE,
            SessionStatus.ERROR,
            SessionStatus.ENDED,
        },
        SessionStatus.ACTIVE: {SessionStatus.ENDED},
        SessionStatus.ENDED: {SessionStatus.ENDED},
        SessionStatus.ERROR: set(),
    }

    TERMINAL_STATES: set[SessionStatus] = {SessionStatus.ENDED, SessionStatus.ERROR}

    @classmethod
    def can_transition(cls, current: SessionStatus, new: SessionStatus) -> bool:
        """Check if a status transition is valid."""
        return new in cls.TRANSITIONS.get(current, set())

    @classmethod
    def is_terminal(cls, state: SessionStatus) -> bool:
        return state in cls.TERMINAL_STATES

    @classmethod
    def get_valid_transitions(cls, state: SessionStatus) -> set[SessionStatus]:
        return cls.TRANSITIONS.get(state, set())

    @classmethod
    def get_valid_sources(cls, target: SessionStatus) -> set[SessionStatus]:
        """Get all states that can move to ``target``, excluding the self-loop.

        Used to build the ``status in (...)`` predicate of conditional updates.
        """
        return {
            state
            for state, targets in cls.TRANSITIONS.items()
            if target in targets and state != target
        }
