"""
Activity batching: decides whether a phone-activity event must be forwarded
to the remote store now, or may be folded into a later write.

Screen-on/unlock events fire dozens of times a day. Family members only need
to know the phone is being used, so in steady state one write per
batch_interval is enough. Two events always go out immediately:

  - the very first observation (nothing has ever been forwarded), and
  - the first event after a long silence, since that is the signal the
    family is waiting for.

The batcher is measured from the last *forward*, not the last observation,
so a continuous stream of events still produces one write per interval.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_BATCH_INTERVAL = timedelta(hours=2)
DEFAULT_LONG_INACTIVITY = timedelta(hours=8)


@dataclass
class BatchState:
    """Per-device batching state, mirrored to local storage."""
    last_forwarded_at: Optional[datetime] = None
    last_observed_at: Optional[datetime] = None

    def record_forward(self, now: datetime) -> None:
        """Call only after the remote write succeeded. Never moves backwards."""
        if self.last_forwarded_at is None or now > self.last_forwarded_at:
            self.last_forwarded_at = now

    def record_observation(self, now: datetime) -> None:
        if self.last_observed_at is None or now > self.last_observed_at:
            self.last_observed_at = now

    def has_pending(self) -> bool:
        """An observed activity has not reached the remote store yet."""
        if self.last_observed_at is None:
            return False
        if self.last_forwarded_at is None:
            return True
        return self.last_observed_at > self.last_forwarded_at


def should_batch(
    now: datetime,
    last_forwarded_at: Optional[datetime],
    force_immediate: bool = False,
    batch_interval: timedelta = DEFAULT_BATCH_INTERVAL,
    long_inactivity_threshold: timedelta = DEFAULT_LONG_INACTIVITY,
) -> bool:
    """
    Return True if the write for an activity observed at `now` should be
    suppressed.

    Args:
        now: observation time of the event.
        last_forwarded_at: time of the last successful forward, or None.
        force_immediate: caller demands a write regardless of timing.
        batch_interval: maximum staleness of the remote copy in steady state.
        long_inactivity_threshold: gap after which the next event is urgent.

    A `now` earlier than last_forwarded_at (late callback) is batched.
    """
    if force_immediate or last_forwarded_at is None:
        return False

    elapsed = now - last_forwarded_at

    if elapsed >= long_inactivity_threshold:
        logger.info(
            "Breaking long inactivity (%.1fh since last forward), sending immediately",
            elapsed.total_seconds() / 3600,
        )
        return False

    if elapsed >= batch_interval:
        return False

    logger.debug("Batching activity update (%ds since last forward)", elapsed.total_seconds())
    return True
