# app/services/verification_service.py

from loguru import logger

from app.core.clock import Clock, system_clock
from app.core.exceptions import NotFound, StaleReference
from app.core.security import OutpassTokenSigner
from app.models.enums import SCANNABLE_STATUSES
from app.models.outpass import Outpass
from app.services.outpass_repository import OutpassRepository


class VerificationGate:
    """
    Turns a scanned token into a live outpass. The signature and age are checked
    first, without touching the database; only then is the outpass loaded and its
    status re-checked, since a valid token can outlive the pass it was issued for.
    """

    def __init__(
        self,
        repository: OutpassRepository,
        signer: OutpassTokenSigner,
        clock: Clock = system_clock,
    ):
        self.repository = repository
        self.signer = signer
        self.clock = clock

    async def verify(self, token: str) -> Outpass:
        # InvalidSignature / Expired propagate as-is
        claims = self.signer.verify(token, self.clock.now())

        outpass = await self.repository.get_outpass(claims.outpass_id, refresh=True)
        if not outpass:
            raise NotFound()

        if str(outpass.student_id) != claims.subject_id:
            logger.warning(f"Token subject mismatch for outpass {outpass.outpass_number}")
            raise StaleReference()

        if outpass.status not in SCANNABLE_STATUSES:
            raise StaleReference()

        return outpass
