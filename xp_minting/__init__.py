"""
XP Minting Engine

Awards off-chain tracked activity on an EVM Points ledger exactly once:
- Eligibility selection from user activity
- Deterministic action identifiers as the ledger's idempotency token
- Scheduled and cron-triggered daily award runs
- Append-only award log with per-period statistics
"""

__version__ = "0.1.0"
