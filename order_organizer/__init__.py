"""
Work Order Organizer
====================
Reconciles an Excel ledger of work orders against a tree of per-order
folders and routes each folder into `<dest>/<type>/<id> <type> <URGENCY>`.

Also unpacks inspector archives (single, folder of archives, or a parent
archive of per-inspector archives) into a per-inspector tree plus a flat
"all orders" tree, and merges the ledger into a normalized secondary
ledger.
"""

__version__ = "1.0.0"
