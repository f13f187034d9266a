"""
SnapMenu Backend — Application Package Initializer
====================================================

What: Marks the `snapmenu` directory as a Python package.
Who:  Imported by uvicorn (`snapmenu.main:app`), pytest, and every module here.

Architecture Note:
    The backend follows the same layered shape as the rest of the service:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← codec, share links, editing, AI adapter
    ├─────────────────────────────────────┤
    │           Schemas (Data)            │  ← Pydantic menu model + API contracts
    └─────────────────────────────────────┘

    There is no persistence layer. A published menu lives only inside its
    share URL (the `m` query parameter), so the token produced by
    `services.menu_codec` is the sole durable copy of a document.
"""

__version__ = "1.0.0"
