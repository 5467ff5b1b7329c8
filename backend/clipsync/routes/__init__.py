# Routes package init
"""
ClipSync Backend — API Routes Package
======================================

Route Inventory (all under /api/v1 unless noted):
    - auth.py:       POST /auth/register, /auth/login, /auth/refresh
                     GET  /user/profile, POST /user/logout, /user/change-password
    - clipboard.py:  /clipboard/items[/{id}], /clipboard/sync,
                     /clipboard/sync-single, /clipboard/statistics,
                     /clipboard/recent, /clipboard/latest
    - health.py:     GET /health, /api/v1/system/health, /api/v1/system/info, /
    - deps.py:       bearer-token dependency shared by the protected routes

Routes stay thin: extract input, call a service, set status and headers.
"""
