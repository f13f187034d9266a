# Services package init
"""
SnapMenu Backend — Services Layer
===================================

What:  Business logic between routes (HTTP) and schemas (data).
How:   Services accept and return MenuDocuments and plain values; routes
       only translate HTTP to service calls and back.

Service Inventory:
    - menu_codec:     MenuDocument ⇄ URL-safe token (the core)
    - share_link:     token ⇄ share address, entry-state resolution
    - menu_editor:    closed set of pure edit operations + preview search
    - image_service:  upload validation (count, type, size, Pillow check)
    - llm_base:       MenuExtractor interface for AI providers
    - gemini_service: Gemini implementation with retry + circuit breaker
    - qr_service:     share address → PNG QR code
    - menu_service:   orchestrates the above for each endpoint
"""
