"""Message composition for each alert kind.

Pure functions: no I/O, no settings lookups. The dispatcher passes in
everything a message needs, which keeps the wording testable.
"""

from synditracker.alerts.schemas import AlertKind, AlertMessage
from synditracker.events.schemas import WindowMetrics

COLOR_RED = 15158332
COLOR_BLUE = 3447003
COLOR_ORANGE = 16733952
COLOR_GREEN = 3066993


def _field(name: str, value: str, inline: bool = True) -> dict:
    return {"name": name, "value": value, "inline": inline}


def compose_spike(
    count: int,
    threshold: int,
    window_hours: int,
    dashboard_url: str,
) -> AlertMessage:
    body = (
        "Hello,\n\n"
        "Synditracker has detected a spike in duplicate syndications.\n\n"
        f"Total duplicates in the last {window_hours} hour(s): {count}\n"
        f"Threshold set at: {threshold}\n\n"
        f"Please check the Synditracker dashboard for more details: {dashboard_url}\n\n"
        "Regards,\nSynditracker Hub"
    )
    return AlertMessage(
        kind=AlertKind.SPIKE,
        title="🚀 DUPLICATE SPIKE DETECTED",
        description=(
            "Synditracker has detected a surge in duplicate publishing events "
            "within the designated scanning window."
        ),
        color=COLOR_RED,
        username="Synditracker Hub",
        footer="Synditracker Spike Monitor",
        subject="[Synditracker Alert] Duplicate Syndication Spike Detected",
        body=body,
        fields=[
            _field("Duplicates Found", str(count)),
            _field("Window", f"{window_hours} hour(s)"),
            _field("Threshold", str(threshold)),
        ],
        dashboard_url=dashboard_url,
    )


def compose_heartbeat(
    metrics: WindowMetrics,
    threshold: int,
    window_hours: int,
    frequency_label: str,
    dashboard_url: str,
) -> AlertMessage:
    rate = f"{metrics.duplicate_rate:.2f}%"
    body = (
        "Hello,\n\n"
        f"This is your scheduled {frequency_label} heartbeat summary for Synditracker.\n\n"
        f"Summary for last {window_hours} hours:\n"
        f"- Total Events: {metrics.total}\n"
        f"- Duplicates: {metrics.duplicates}\n"
        f"- Violation Rate: {rate}\n\n"
        f"Threshold: {threshold}\n\n"
        f"View full stream: {dashboard_url}\n\n"
        "Regards,\nSynditracker Hub"
    )
    return AlertMessage(
        kind=AlertKind.HEARTBEAT,
        title=f"💓 {frequency_label.upper()} PULSE SUMMARY",
        description=(
            f"Aggregated network performance for the last {window_hours} hour(s)."
        ),
        color=COLOR_BLUE,
        username="Synditracker Heartbeat",
        footer="Synditracker Heartbeat Monitor",
        subject=f"[Synditracker Heartbeat] {frequency_label} Summary",
        body=body,
        fields=[
            _field("Total Events", str(metrics.total)),
            _field("Duplicates", str(metrics.duplicates)),
            _field("Intensity", rate),
            _field("Threshold", str(threshold)),
        ],
        dashboard_url=dashboard_url,
    )


def compose_system_error(message: str, dashboard_url: str) -> AlertMessage:
    return AlertMessage(
        kind=AlertKind.ERROR,
        title="⚠️ SYNDITRACKER SYSTEM ERROR",
        description=message,
        color=COLOR_ORANGE,
        username="Synditracker Error Reporter",
        footer="Synditracker Error Reporter",
        subject="[Synditracker Error] System error reported",
        body=message,
        dashboard_url=dashboard_url,
    )


def compose_test(site_name: str, site_url: str, dashboard_url: str) -> AlertMessage:
    return AlertMessage(
        kind=AlertKind.TEST,
        title="🔔 Syndication Alert",
        description=(
            f"**New Event Reported**\n\n**Source:** {site_name}\n**URL:** {site_url}"
        ),
        color=COLOR_GREEN,
        username="Synditracker Hub",
        footer="Synditracker Notification",
        subject="[Synditracker] Test alert",
        body=f"Test alert from {site_name} ({site_url}).",
        dashboard_url=dashboard_url,
    )
