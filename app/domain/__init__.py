"""
Domain layer for live sessions.

Submodules:
- live.session: session and participant lifecycle, the close path.
- live.state: ephemeral live state and SSE fan-out.
- live.notification: LiveKit webhook processing.
- live.reconciliation: periodic sweep against LiveKit's room list.
- utils: clock and ID helpers.
"""
