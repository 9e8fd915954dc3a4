"""Management CLI for capacity maintenance.

Usage:
    python -m fretmarine.cli audit-capacity            # Recompute every drifted open container
    python -m fretmarine.cli recompute <container_id>  # Rebuild one container's used capacity
"""

import asyncio
import sys

from fretmarine.database import async_session, engine
from fretmarine.services.facade import ReconciliationFacade
from fretmarine.services.scheduler import run_capacity_audit


async def audit_capacity():
    facade = ReconciliationFacade(async_session)
    summary = await run_capacity_audit(facade=facade)
    for container_id in summary["container_ids"]:
        print(f"  Corrected {container_id}")
    print(f"\n{summary['checked']} container(s) checked, {summary['corrected']} corrected")
    await engine.dispose()


async def recompute(container_id: str):
    facade = ReconciliationFacade(async_session)
    figures = await facade.recompute_capacity(container_id)
    print(
        f"  {container_id}: {figures.used_weight_kg} kg, "
        f"{figures.used_volume_m3} m3, {figures.item_count} item(s)"
    )
    await engine.dispose()


if __name__ == "__main__":
    cmd = sys.argv[1] if len(sys.argv) > 1 else ""
    if cmd == "audit-capacity":
        asyncio.run(audit_capacity())
    elif cmd == "recompute" and len(sys.argv) > 2:
        asyncio.run(recompute(sys.argv[2]))
    else:
        print(__doc__)
        sys.exit(1)
