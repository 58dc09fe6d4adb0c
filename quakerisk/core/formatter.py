"""Message formatting - Pure functions.

This module formats alerts and events into broadcast payloads and
human-readable text. All functions are pure with no side effects.
"""

from datetime import datetime
from typing import Any

from quakerisk.core.alerts import Alert, Severity
from quakerisk.core.event import Event


SEVERITY_EMOJI = {
    Severity.MEDIUM: "🔶",
    Severity.HIGH: "🚨",
}


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit if count == 1 else unit + 's'} ago"


def format_time_ago(time: datetime, now: datetime) -> str:
    """Describe how long ago an event happened.

    Pure function.

    Args:
        time: Event occurrence time
        now: Reference instant

    Returns:
        "N seconds ago", "N mins ago", "N hours ago", "N days ago", or the
        ISO date once the event is a week old
    """
    seconds = int((now - time).total_seconds())

    if seconds < 60:
        return f"{seconds} seconds ago"

    minutes = seconds // 60
    if minutes < 60:
        return _plural(minutes, "min")

    hours = minutes // 60
    if hours < 24:
        return _plural(hours, "hour")

    days = hours // 24
    if days < 7:
        return _plural(days, "day")

    return time.date().isoformat()


def format_event_summary(event: Event) -> str:
    """Format a one-line summary of an event.

    Pure function.
    """
    time_str = event.time.strftime("%Y-%m-%d %H:%M:%S UTC")
    return (
        f"M{event.magnitude:.1f} - {event.place} "
        f"at {time_str} (depth: {event.depth_km:.1f}km)"
    )


def format_alert_message(alert: Alert, event: Event) -> dict[str, Any]:
    """Format an alert as a Slack message payload.

    Pure function.

    Args:
        alert: Stored alert to broadcast
        event: Event that raised the alert

    Returns:
        Slack message payload dict
    """
    # Unix timestamp lets Slack render the time in the reader's zone
    timestamp = int(event.time.timestamp())
    maps_url = f"https://www.google.com/maps?q={event.latitude},{event.longitude}"
    emoji = SEVERITY_EMOJI[alert.severity]

    text = f"{emoji} {alert.message}: M{alert.magnitude:.1f} - {alert.location}"

    blocks: list[dict[str, Any]] = [
        {
            "type": "header",
            "text": {
                "type": "plain_text",
                "text": f"{alert.message} (M{alert.magnitude:.1f})",
            },
        },
        {
            "type": "section",
            "text": {
                "type": "mrkdwn",
                "text": (
                    f"<{maps_url}|{alert.location}> at "
                    f"<!date^{timestamp}^{{time}}|{event.time.strftime('%H:%M')}>\n"
                    f"Depth: {event.depth_km:.1f} km | Severity: *{alert.severity.value.upper()}*"
                ),
            },
        },
    ]

    if event.tsunami:
        blocks.append({
            "type": "section",
            "text": {
                "type": "mrkdwn",
                "text": "🌊 *TSUNAMI WARNING ISSUED*",
            },
        })

    if event.url:
        blocks.append({
            "type": "actions",
            "elements": [
                {
                    "type": "button",
                    "text": {
                        "type": "plain_text",
                        "text": "View on USGS",
                    },
                    "url": event.url,
                },
            ],
        })

    blocks.append({"type": "divider"})

    return {
        "text": text,
        "blocks": blocks,
    }
