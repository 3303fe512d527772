# Services package init
"""
NoteDrop Backend — Services Layer
==================================

What:  Business logic between routes (HTTP) and the notes repository.

Service Inventory:
    - DocumentStore (abstract): read/write the notes document with a revision token
    - GitHubDocumentStore: DocumentStore over the GitHub contents API
    - note_codec: NoteCollection ⇄ document bytes
    - ContentTransformer: classify + obfuscate/filter, fail-open
    - VisibilityGate: content vs placeholder per reader
    - NoteStore: load → append → persist orchestration
"""
