"""
Wastebin: Services Layer
==========================

    - PasteStore:      durable create / load / list / count / delete
    - SchemaMigrator:  versioned copy-and-rename table upgrades
    - PasteService:    submission validation and list paging

Services know nothing about HTTP; routes call them and translate their
exceptions through the handlers in main.py.
"""
