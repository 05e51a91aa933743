"""Client and staff lookups shared by the booking write paths."""
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.settings import settings
from db.models_sqlalchemy import Client, Staff
from domain.exceptions import NotFoundError
from domain.models import ClientInfo


logger = logging.getLogger(__name__)


def client_lookup_email(info: ClientInfo) -> str:
    """Email used as the client key; phone-based placeholder when none given."""
    if info.email:
        return info.email
    digits = "".join(ch for ch in info.phone if ch.isdigit() or ch == "+")
    return f"{digits}@{settings.temp_email_domain}"


async def resolve_or_create_client(session: AsyncSession, info: ClientInfo) -> Client:
    """
    Find the client by email, creating it when missing.

    Runs inside the caller's transaction. A concurrent insert of the same
    email is absorbed through a savepoint and the existing row is returned.

    Args:
        session: Session of the booking transaction
        info: Client details from the request

    Returns:
        Client row
    """
    email = client_lookup_email(info)

    result = await session.execute(select(Client).where(Client.email == email))
    client = result.scalar_one_or_none()
    if client is not None:
        return client

    try:
        async with session.begin_nested():
            client = Client(name=info.name, email=email, phone=info.phone)
            session.add(client)
        logger.info(f"Created client {client.id} for {email}")
        return client
    except IntegrityError:
        logger.info(f"Client {email} created concurrently, reusing it")
        result = await session.execute(select(Client).where(Client.email == email))
        return result.scalar_one()


async def resolve_staff(session: AsyncSession, staff_id: Optional[str] = None) -> Staff:
    """
    Staff member for a booking.

    Without an explicit ID the first active staff member is used, matching
    how public bookings were assigned before staff selection existed.

    Raises:
        NotFoundError: If the staff member does not exist or none is active
    """
    if staff_id:
        staff = await session.get(Staff, staff_id)
        if staff is None or not staff.is_active:
            raise NotFoundError(f"Staff member {staff_id} not found")
        return staff

    result = await session.execute(
        select(Staff)
        .where(Staff.is_active.is_(True))
        .order_by(Staff.created_at, Staff.id)
        .limit(1)
    )
    staff = result.scalar_one_or_none()
    if staff is None:
        raise NotFoundError("No staff available to handle booking")
    return staff
