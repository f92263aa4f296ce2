"""
Live streaming domain logic.

Includes:
- session: Session lifecycle and participant membership.
- state: Ephemeral live state and SSE fan-out.
- notification: Idempotent LiveKit webhook processing.
- reconciliation: Periodic sweep of sessions whose room disappeared.
"""
