from datetime import datetime, timedelta

from pydantic import BaseModel

from src.interfaces.ledger import SubscriptionTx

SUBSCRIPTION_PERIOD = timedelta(days=31)


class ContinuityDecision(BaseModel):
    subscribed: bool
    # Pre-signed transaction to send now, set only when the user is quasi-subscribed
    candidate: SubscriptionTx | None = None
    period: tuple[datetime, datetime] | None = None

    @property
    def quasi_subscribed(self) -> bool:
        return self.candidate is not None


def next_subscription_tx(pre_signed_txs: list[SubscriptionTx], now: datetime) -> SubscriptionTx | None:
    """The transaction valid at `now` that comes first in the renewal sequence, if any."""
    eligible = [tx for tx in pre_signed_txs if tx.is_valid_at(now)]
    if not eligible:
        return None
    # min keeps the first one in list order on equal valid_from
    return min(eligible, key=lambda tx: tx.valid_from())


def evaluate(
    last_activity: datetime | None,
    pre_signed_txs: list[SubscriptionTx],
    now: datetime,
    period: timedelta = SUBSCRIPTION_PERIOD,
) -> ContinuityDecision:
    """
    Decide whether a user is subscribed and which pre-signed transaction has to be sent, if any.

    A subscription lasts `period` after the last activity on the subscription wallet. Once it is
    outdated, a pre-signed transaction valid right now makes the user quasi-subscribed: they are
    reported as subscribed while the transaction is being sent, so there is no gap between periods.

    Args:
        last_activity: Last pending or successful transaction on the subscription wallet
        pre_signed_txs: Pre-signed renewals not sent yet
        now: Current time
        period: Duration of a subscription period

    Returns:
        The decision, with the transaction to submit as `candidate`
    """
    if last_activity is None:
        # The first period was never paid, pre-signed renewals can't start it
        return ContinuityDecision(subscribed=False)

    expires_at = last_activity + period
    if now <= expires_at:
        return ContinuityDecision(subscribed=True, period=(last_activity, expires_at))

    candidate = next_subscription_tx(pre_signed_txs, now)
    if candidate is None:
        return ContinuityDecision(subscribed=False)

    return ContinuityDecision(subscribed=True, candidate=candidate, period=(now, now + period))
