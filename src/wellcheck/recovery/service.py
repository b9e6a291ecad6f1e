"""
AccountRecoveryService — re-pairs a reinstalled phone with its family document.

Flow for recover(name, pairing_code):
  1. Query families/ for documents with connectionCode == pairing_code
  2. None found → CONNECTION_CODE_NOT_FOUND
  3. Score each document's elderlyName against the typed name
  4. UNIQUE → restore the local DeviceProfile and return the candidate
     NONE → NAME_NOT_MATCH
     AMBIGUOUS → MULTIPLE_MATCHES carrying the ranked shortlist; the caller
     lets the user pick one and calls restore()

auto_detect() is the fallback when the user remembers neither: it ranks active
families by how "alive" their documents look.
"""
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.exc import SQLAlchemyError

from wellcheck.analysis.name_matching import (
    MAX_DISPLAY_CANDIDATES,
    MatchOutcome,
    RecoveryCandidate,
    StoredProfile,
    match,
)
from wellcheck.config import Settings, local_now
from wellcheck.db.state_store import StateStore
from wellcheck.models.profile import DeviceProfile
from wellcheck.remote.client import RemoteStoreError

logger = logging.getLogger(__name__)

AUTO_DETECT_THRESHOLD = 0.3
AUTO_DETECT_SEARCH_LIMIT = 50


class RecoveryErrorType(str, Enum):
    CONNECTION_CODE_NOT_FOUND = "connection_code_not_found"
    NAME_NOT_MATCH = "name_not_match"
    MULTIPLE_MATCHES = "multiple_matches"
    RECOVERY_FAILED = "recovery_failed"


class AccountRecoveryError(Exception):
    def __init__(
        self,
        error_type: RecoveryErrorType,
        message: str,
        candidates: Optional[List[RecoveryCandidate]] = None,
    ):
        super().__init__(message)
        self.error_type = error_type
        self.candidates = candidates or []


def auto_detection_confidence(data: Dict[str, Any], now: datetime) -> float:
    """
    How likely a family document belongs to an active, set-up device.

    `now` and any datetimes in `data` must agree on timezone-awareness.
    """
    confidence = 0.0

    last_activity = data.get("lastPhoneActivity")
    if isinstance(last_activity, datetime):
        days = (now - last_activity).days
        if days <= 7:
            confidence += 0.5
        elif days <= 30:
            confidence += 0.3

    if (data.get("todayMealCount") or 0) > 0:
        confidence += 0.2

    settings = data.get("settings") or {}
    if settings.get("survivalSignalEnabled"):
        confidence += 0.2

    if data.get("approved") is True:
        confidence += 0.3

    return min(max(confidence, 0.0), 1.0)


class AccountRecoveryService:
    """Finds this device's family document again after a reinstall."""

    def __init__(self, remote, store: StateStore, settings: Settings):
        """
        Args:
            remote: FirestoreClient instance (or AsyncMock in tests).
            store: local state; receives the restored DeviceProfile.
        """
        self.remote = remote
        self.store = store
        self.settings = settings

    async def recover(self, name: str, pairing_code: str) -> RecoveryCandidate:
        """
        Returns:
            The matched candidate; the local profile is already restored.

        Raises:
            AccountRecoveryError: for every outcome other than a unique match.
        """
        logger.info("Attempting account recovery with pairing code %s", pairing_code)

        try:
            docs = await self.remote.query("families", "connectionCode", pairing_code)
        except RemoteStoreError as exc:
            logger.error("Family lookup failed: %s", exc)
            raise AccountRecoveryError(
                RecoveryErrorType.RECOVERY_FAILED, f"Could not reach the family store: {exc}",
            ) from exc

        if not docs:
            raise AccountRecoveryError(
                RecoveryErrorType.CONNECTION_CODE_NOT_FOUND,
                f"No family uses pairing code {pairing_code}",
            )

        profiles = [
            StoredProfile(profile_id=doc_id, name=data.get("elderlyName") or "", data=data)
            for doc_id, data in docs
        ]
        result = match(name, profiles)

        if result.outcome == MatchOutcome.NONE:
            raise AccountRecoveryError(
                RecoveryErrorType.NAME_NOT_MATCH,
                f"No profile with pairing code {pairing_code} matches that name",
            )
        if result.outcome == MatchOutcome.AMBIGUOUS:
            logger.info("Recovery ambiguous: %d candidates", len(result.candidates))
            raise AccountRecoveryError(
                RecoveryErrorType.MULTIPLE_MATCHES,
                "Several profiles match; pick one",
                candidates=result.candidates,
            )

        self.restore(result.best)
        return result.best

    def restore(self, candidate: RecoveryCandidate) -> DeviceProfile:
        """Write the chosen family's identity into the local profile."""
        try:
            profile = self.store.save_profile(
                family_id=candidate.profile_id,
                pairing_code=str(candidate.data.get("connectionCode", "")),
                elderly_name=candidate.stored_name,
                setup_complete=True,
            )
        except SQLAlchemyError as exc:
            logger.error("Failed to restore local profile: %s", exc)
            raise AccountRecoveryError(
                RecoveryErrorType.RECOVERY_FAILED, f"Could not save the recovered profile: {exc}",
            ) from exc

        logger.info("Account recovered for family %s", candidate.profile_id)
        return profile

    async def auto_detect(self, now: Optional[datetime] = None) -> List[RecoveryCandidate]:
        """
        Rank active families by auto_detection_confidence().

        Returns:
            Up to MAX_DISPLAY_CANDIDATES candidates scoring at least
            AUTO_DETECT_THRESHOLD, best first. match_score holds the confidence.
        """
        tz = ZoneInfo(self.settings.timezone)
        now = now or local_now(self.settings)
        if now.tzinfo is None:
            now = now.replace(tzinfo=tz)

        docs = await self.remote.query("families", "isActive", True, limit=AUTO_DETECT_SEARCH_LIMIT)

        candidates = []
        for doc_id, data in docs:
            confidence = auto_detection_confidence(data, now)
            if confidence >= AUTO_DETECT_THRESHOLD:
                candidates.append(RecoveryCandidate(
                    profile_id=doc_id,
                    stored_name=data.get("elderlyName") or "",
                    match_score=confidence,
                    data=data,
                ))

        candidates.sort(key=lambda c: c.match_score, reverse=True)
        logger.info("Auto-detect found %d candidate families", len(candidates))
        return candidates[:MAX_DISPLAY_CANDIDATES]

    async def create_family(self, family_id: str, pairing_code: str, elderly_name: str) -> DeviceProfile:
        """First-time setup: publish the family document, then save the profile."""
        await self.remote.update(f"families/{family_id}", {
            "connectionCode": pairing_code,
            "elderlyName": elderly_name,
            "isActive": True,
            "approved": False,
            "settings.survivalSignalEnabled": True,
            "createdAt": local_now(self.settings),
        })
        return self.store.save_profile(
            family_id=family_id,
            pairing_code=pairing_code,
            elderly_name=elderly_name,
            setup_complete=True,
        )
