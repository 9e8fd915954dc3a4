"""Sequential code generation for business identifiers.

Codes follow ``PREFIX-YYYYMMDD-NNN``: the sequence restarts every day
and is derived from the number of codes already issued with today's
prefix.

  client      CLI-20260301-001
  cargo_item  MAR-20260301-0001
  container   CONT-20260301-001   (file number DOS-20260301-001)
  payment     REC-20260301-001
"""

from datetime import date

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fretmarine.models.cargo_item import CargoItem
from fretmarine.models.client import Client
from fretmarine.models.container import Container
from fretmarine.models.payment import Payment

# entity → (column, prefix, sequence width)
CODE_FORMATS = {
    "client": (Client.code, "CLI", 3),
    "cargo_item": (CargoItem.barcode, "MAR", 4),
    "container": (Container.container_number, "CONT", 3),
    "file": (Container.file_number, "DOS", 3),
    "payment": (Payment.receipt_number, "REC", 3),
}


async def generate_code(
    db: AsyncSession,
    entity: str,
    today: date | None = None,
) -> str:
    """Generate the next code for *entity*, e.g. ``"REC-20260301-004"``."""
    column, prefix, width = CODE_FORMATS[entity]
    today_str = (today or date.today()).strftime("%Y%m%d")
    code_prefix = f"{prefix}-{today_str}-"

    result = await db.execute(
        select(func.count()).where(column.like(f"{code_prefix}%"))
    )
    seq_num = (result.scalar() or 0) + 1
    return f"{code_prefix}{seq_num:0{width}d}"
