"""
zessionizer - Ranked Project Index

Keeps a live catalog of project directories (found by `.git` or a
`.zessionizer` marker file), ranks them by frecency, fuzzy-filters them
against a query and opens or resumes a named session for the selection.

Layout:
  - ranking: frecency scorer, fuzzy matcher, redis client
  - index:   registry, discovery scanner, watch reconciler, stores
  - worker:  message protocol and the background worker thread
  - app:     interaction state machine, sessions, host, main driver
  - status:  HTTP status API
"""

__version__ = "1.0.0"
