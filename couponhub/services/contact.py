from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from couponhub.models.contact import ContactSubmission
from couponhub.schemas.contact import ContactCreate

logger = logging.getLogger(__name__)


async def create_contact(db: AsyncSession, data: ContactCreate) -> ContactSubmission:
    row = ContactSubmission(**data.model_dump())
    try:
        db.add(row)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await db.refresh(row)
    logger.info("%s message received from %s", row.type.title(), row.email)
    return row


async def list_contacts(db: AsyncSession, *, type_: Optional[str] = None) -> list[ContactSubmission]:
    q = select(ContactSubmission)
    if type_:
        q = q.where(ContactSubmission.type == type_)
    res = await db.execute(q.order_by(ContactSubmission.created_at.desc()))
    return list(res.scalars().all())
