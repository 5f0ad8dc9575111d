"""
NatJus Backend — API Routes Package
=====================================

Route Inventory:
    - uploads.py:      POST /api/uploads, GET /api/uploads/{job_id}
    - notas.py:        GET/PATCH /api/notas..., GET /api/files/{path}
    - dashboard.py:    GET  /api/dashboard
    - chat.py:         GET  /api/chat/greeting, POST /api/chat
    - configuracao.py: GET/PUT /api/configuracao, connection tests
    - drive.py:        GET/DELETE /api/drive/files
    - health.py:       GET  /health

Routes stay thin: read the request, call a service, shape the response.
"""
