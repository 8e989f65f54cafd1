"""Flask blueprint package for InvoiceDesk routes.

Blueprints are defined in the sibling modules (e.g., ``invoice_routes``) and
registered in :mod:`invoicedesk.__init__`.
"""
