"""Payment requirements, proofs, ledger verification, and anti-replay."""
