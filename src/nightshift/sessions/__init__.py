"""Session binding for nightshift checks."""

from .binder import Session, SessionBinder, session_name
