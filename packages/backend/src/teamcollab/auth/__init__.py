"""Authentication and authorization.

Users sign up with email/password and receive a short-lived access JWT plus a
refresh JWT that is persisted server-side, so logout and admin deactivation
can revoke it. The same access token authenticates REST calls (Bearer header)
and the realtime socket (`?token=` query parameter).
"""
