# Board info widget: board metadata, inbound relations, and custom entry layouts
#
# Components:
#   schema.py    - Data model (Column, BoardSummary, RelationRecord, Field, Section, LayoutConfig)
#   errors.py    - Classified error kinds surfaced to callers
#   relations.py - Relation discovery across workspace boards
#   layout.py    - Layout configuration engine (working/saved copies, save/cancel)
#   forms.py     - Column type to field kind mapping and derived forms
#   store.py     - Persistence gateways (memory, SQLite) for per-instance layouts
#   catalog.py   - Column catalogs (monday GraphQL API, static)
#   roles.py     - Host role signal and the advisory edit gate
#   widget.py    - Widget session tying catalog, relations and layout together
#   config.py    - YAML/env configuration
#   server.py    - Flask JSON API over widget sessions
