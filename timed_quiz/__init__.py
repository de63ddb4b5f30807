"""Timed, scored multiple-choice quiz sessions with a Discord front end."""
