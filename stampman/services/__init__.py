"""Stampman engine services.

One module per engine component:
- ledger: LedgerService (points earn/redeem, enrollment)
- stamps: StampCardService
- rewards: RedemptionService
- codes: StampCodeService
- progress: ProgressService
- scan: ScanService
- store: LedgerStore (unit of work)
"""

from stampman.services import codes, ledger, progress, rewards, scan, stamps, store

__all__ = ["codes", "ledger", "progress", "rewards", "scan", "stamps", "store"]
