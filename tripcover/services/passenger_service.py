import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tripcover.models.passenger import Passenger
from tripcover.schemas.common import parse_provider_date
from tripcover.schemas.issuance import IssuePassenger

logger = logging.getLogger(__name__)


class PassengerService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_identity(self, email: str, document_number: str) -> Optional[Passenger]:
        result = await self.db.execute(
            select(Passenger)
            .where(
                Passenger.email == email,
                Passenger.document_number == document_number,
            )
            .order_by(Passenger.created_at)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def upsert(self, data: IssuePassenger, created_by_id: UUID) -> Passenger:
        """
        Create or update a passenger keyed on (email, document number).

        An existing row keeps its identity fields; contact and address are
        overwritten with the latest values. Last write wins.
        """
        passenger = await self.find_by_identity(data.email, data.document_number)
        address = data.address_data

        if passenger is not None:
            passenger.phone = data.phone
            passenger.address_country_code = address.country_code
            passenger.street_name = address.street_name
            passenger.street_number = address.street_number
            passenger.complements = address.complements
            passenger.postal_code = address.postal_code
            passenger.city = address.city
            passenger.state = address.state
            logger.debug(f"Updated passenger {passenger.id} from issuance data")
        else:
            passenger = Passenger(
                name=data.name,
                lastname=data.lastname,
                birth_date=parse_provider_date(data.birth_date),
                email=data.email,
                phone=data.phone,
                country_code=data.country_code,
                document_type=data.document_type,
                document_number=data.document_number,
                preferred_name=data.preferred_name,
                preferred_surname=data.preferred_surname,
                address_country_code=address.country_code,
                street_name=address.street_name,
                street_number=address.street_number,
                complements=address.complements,
                postal_code=address.postal_code,
                city=address.city,
                state=address.state,
                created_by_id=created_by_id,
            )
            self.db.add(passenger)

        await self.db.flush()
        await self.db.refresh(passenger)
        return passenger

    async def upsert_many(
        self, passengers: list[IssuePassenger], created_by_id: UUID
    ) -> list[Passenger]:
        """Upsert in input order. The result is index-aligned with the input."""
        # Sequential: one session cannot run statements concurrently
        return [await self.upsert(p, created_by_id) for p in passengers]
