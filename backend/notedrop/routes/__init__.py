# Routes package init
"""
NoteDrop Backend — API Routes Package
======================================

Route Inventory:
    - notes.py:   GET  /api/notes            (list notes)
                  GET  /api/notes/{id}       (one note, visibility-gated)
                  POST /api/notes            (publish a note)
    - health.py:  GET  /health               (service health check)

Routes are thin: they pull data out of the request, call the NoteStore,
and shape the response. Errors propagate to the global handlers in main.py.
"""
