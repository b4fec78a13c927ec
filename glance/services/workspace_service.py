"""
Workspace service: membership and widget lookups.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from glance.models.workspace import Widget, WorkspaceMember


async def get_membership(
    db: AsyncSession, workspace_id: str, user_id: str
) -> WorkspaceMember | None:
    result = await db.execute(
        select(WorkspaceMember).where(
            WorkspaceMember.workspace_id == workspace_id,
            WorkspaceMember.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def get_widget(db: AsyncSession, widget_id: str) -> Widget | None:
    result = await db.execute(select(Widget).where(Widget.id == widget_id))
    return result.scalar_one_or_none()


async def get_widget_names(db: AsyncSession, workspace_id: str) -> dict[str, str]:
    """Map widget id → display name for every widget in the workspace."""
    result = await db.execute(
        select(Widget.id, Widget.name).where(Widget.workspace_id == workspace_id)
    )
    return {row.id: row.name for row in result}
