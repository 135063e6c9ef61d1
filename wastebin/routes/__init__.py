"""
Wastebin: Routes Package
==========================

Route Inventory:
    - pastes.py:  GET  /                  submission form
                  POST /new               create a paste
                  GET  /list              paged listing
                  GET  /{id}              show a paste
                  GET  /{id}/raw          raw body
                  POST /{id}/delete       admin delete
    - admin.py:   GET  /install           create the table
                  POST /upgrade/{version} schema migration
    - health.py:  GET  /health            service health check

Handlers stay thin: they pull inputs from the request, call the store,
migrator or paste service, and pick the response. Failures propagate as
WastebinError subclasses to the handlers registered in main.py.
"""
