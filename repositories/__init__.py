"""
repositories/ - Data Access Layer
==================================
Each repository encapsulates all SQL queries for one table.

Two stores are exposed to the service layer, each with a PostgreSQL
implementation and an in-memory one with the same methods:
    - Ledger store:  get / set / add / reset of a chat's running total.
    - Dedup store:   has_processed / mark_processed per (chat_id, msg_id).
"""
