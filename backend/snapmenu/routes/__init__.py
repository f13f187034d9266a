# Routes package init
"""
SnapMenu Backend — API Routes Package
=======================================

What:  HTTP route handlers that accept requests and return responses.

Route Inventory:
    - extract.py:  POST /api/extract          (photos → menu)
    - share.py:    POST /api/share            (menu → share link)
                   POST /api/share/qr         (menu → QR code PNG)
                   POST /api/share/resolve    (incoming address → entry state)
    - menu.py:     GET  /api/menu?m=<token>   (token → menu, optional search)
                   POST /api/menu/edits       (menu + edits → menu)
    - health.py:   GET  /health               (service health check)

Design Principle:
    Routes are THIN: read the request, call MenuService, shape the response.
    Errors are raised, not returned; global handlers in main.py format them.
"""
