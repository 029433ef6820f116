import re
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

TRAILING_NUMBER = re.compile(r'(\d+)$')


async def generate_sequential_code(session: AsyncSession, column, prefix: str, width: int, *conditions) -> str:
    """Next `<prefix><zero-padded number>` after the highest existing code with that prefix.

    `width` is a minimum; numbers past it simply grow longer. Ordering by length
    first keeps GRD-100000 above GRD-99999.
    """
    result = await session.execute(
        select(column)
        .where(column.like(f"{prefix}%"), *conditions)
        .order_by(func.length(column).desc(), column.desc())
        .limit(1)
    )
    last_code = result.scalar_one_or_none()

    next_number = 1
    if last_code:
        match = TRAILING_NUMBER.search(last_code)
        if match:
            next_number = int(match.group(1)) + 1
    return f"{prefix}{next_number:0{width}d}"
