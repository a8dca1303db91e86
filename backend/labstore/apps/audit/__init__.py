"""
Audit app.

Append-only trail of ledger and account mutations, written after the
mutation commits. Audit writes are best-effort and never undo the
operation they describe.
"""
