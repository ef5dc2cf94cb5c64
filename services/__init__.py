"""
services/ - Business Logic Layer
================================
The ledger core: expression resolution and evaluation, amount formatting,
command parsing, the per-message orchestrator and the per-chat dispatcher.
Services talk to repositories and the reply sender only through the
objects they are constructed with.
"""
