"""
Recipient and destination resolution.

Targeted events (``target`` names audiences) go only to the event's user,
and only on the channels those audiences map to. Untargeted events go to the
user and every linked family member or caregiver, on every channel.
"""

from dataclasses import dataclass

from messaging_core.contracts import Audience, Event

from notifications_core.adapters.base import Channel
from notifications_core.persistence.repo import RecipientDirectory

AUDIENCE_CHANNELS: dict[str, Channel] = {
    Audience.DASHBOARD.value: Channel.DASHBOARD,
    Audience.MOBILE.value: Channel.PUSH,
    Audience.SMS.value: Channel.SMS,
}

ALL_CHANNELS = (Channel.DASHBOARD, Channel.PUSH, Channel.SMS)


@dataclass(frozen=True)
class Delivery:
    """One (recipient, channel) pair to deliver to."""

    recipient_id: str
    channel: Channel


def channels_for(event: Event) -> list[Channel]:
    """Channels an event may use. Unknown audience names select nothing."""
    if not event.target:
        return list(ALL_CHANNELS)
    return [c for c in ALL_CHANNELS if c in {AUDIENCE_CHANNELS.get(a) for a in event.target}]


def resolve_deliveries(event: Event, directory: RecipientDirectory) -> list[Delivery]:
    channels = channels_for(event)

    if event.target:
        recipients = [event.user_id]
    else:
        recipients = [event.user_id]
        for linked in directory.linked_parties(event.user_id):
            if linked not in recipients:
                recipients.append(linked)

    return [Delivery(recipient, channel) for recipient in recipients for channel in channels]


def resolve_destination(channel: Channel, recipient_id: str, directory: RecipientDirectory) -> str | None:
    """Address for a recipient on a channel, or None when unreachable there."""
    if channel == Channel.PUSH:
        token = directory.latest_device_token(recipient_id)
        return token.token if token else None
    if channel == Channel.SMS:
        destination = directory.active_destination(recipient_id, "sms")
        return destination.address if destination else None
    return recipient_id
