"""
Directory lookups — read-only access to accounts and content items.

Accounts and content are owned by other services; the payment flows only
need to resolve names/ids and confirm existence.
"""
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession


async def get_account(db: AsyncSession, account_id: int):
    from db_models import Account

    result = await db.execute(select(Account).where(Account.id == account_id))
    return result.scalar_one_or_none()


async def get_account_by_name(db: AsyncSession, name: str):
    from db_models import Account

    result = await db.execute(select(Account).where(Account.name == name))
    return result.scalar_one_or_none()


async def get_content_item(db: AsyncSession, content_item_id: int) -> Optional[object]:
    """Live (not deleted) content item, or None."""
    from db_models import ContentItem

    result = await db.execute(
        select(ContentItem).where(
            ContentItem.id == content_item_id,
            ContentItem.is_deleted == False,  # noqa: E712
        )
    )
    return result.scalar_one_or_none()


async def content_item_exists(db: AsyncSession, content_item_id: int) -> bool:
    return await get_content_item(db, content_item_id) is not None
