# Overview: Outbound LINE push notifications for signing links; failures never propagate.

"""
Notification Service (LINE Messaging API)

Pushes a preformatted text message to a LINE group. Delivery is
best-effort: every failure is logged and reported as False, and never
fails or rolls back the operation that triggered it.
"""

from __future__ import annotations

import httpx
from flask import current_app

from ..extensions import db
from ..models import LineGroup
from laborslip.time_utils import utcnow
from .calculator import format_currency


DEFAULT_GROUP_NAME = "未命名群組"
JOIN_CONFIRMATION = "✅ 勞報單系統已連接此群組！\n\n之後產生的簽名連結可以直接發送到這裡。"


def _headers() -> dict:
    return {
        "Content-Type": "application/json",
        "Authorization": f"Bearer {current_app.config.get('LINE_CHANNEL_ACCESS_TOKEN') or ''}",
    }


def _api(path: str) -> str:
    return f"{current_app.config['LINE_API_BASE']}{path}"


def format_signing_message(payee_name: str, gross_amount: int, net_amount: int, sign_link: str) -> str:
    return (
        "📋 勞報單簽署通知\n"
        "\n"
        f"👤 領款人：{payee_name}\n"
        f"💰 總金額：{format_currency(gross_amount)}\n"
        f"💵 實付金額：{format_currency(net_amount)}\n"
        "\n"
        "請點擊下方連結完成簽署：\n"
        f"{sign_link}\n"
        "\n"
        "⚠️ 此連結為一次性使用，簽署後即失效"
    )


def push_text(to: str, text: str) -> bool:
    """Push one text message. Returns True on HTTP 2xx."""
    if not current_app.config.get("LINE_CHANNEL_ACCESS_TOKEN"):
        current_app.logger.warning("LINE_CHANNEL_ACCESS_TOKEN not configured; message to %s dropped", to)
        return False

    try:
        response = httpx.post(
            _api("/v2/bot/message/push"),
            headers=_headers(),
            json={"to": to, "messages": [{"type": "text", "text": text}]},
            timeout=current_app.config["LINE_TIMEOUT_SECONDS"],
        )
    except httpx.HTTPError:
        current_app.logger.warning("LINE push to %s failed", to, exc_info=True)
        return False

    if response.is_error:
        current_app.logger.warning(
            "LINE API error %s for %s: %s", response.status_code, to, response.text[:500]
        )
        return False
    return True


def send_signing_link(group_id: str, payee_name: str, gross_amount: int, net_amount: int, sign_link: str) -> bool:
    message = format_signing_message(payee_name, gross_amount, net_amount, sign_link)
    return push_text(group_id, message)


def fetch_group_name(group_id: str) -> str | None:
    if not current_app.config.get("LINE_CHANNEL_ACCESS_TOKEN"):
        return None
    try:
        response = httpx.get(
            _api(f"/v2/bot/group/{group_id}/summary"),
            headers=_headers(),
            timeout=current_app.config["LINE_TIMEOUT_SECONDS"],
        )
    except httpx.HTTPError:
        current_app.logger.warning("LINE group summary for %s failed", group_id, exc_info=True)
        return None
    if response.is_error:
        return None
    try:
        return response.json().get("groupName")
    except ValueError:
        return None


def list_groups() -> list[LineGroup]:
    return db.session.query(LineGroup).order_by(LineGroup.group_name.asc()).all()


def register_group(group_id: str) -> LineGroup:
    """Upsert a joined group by group_id."""
    name = fetch_group_name(group_id) or DEFAULT_GROUP_NAME
    group = db.session.query(LineGroup).filter_by(group_id=group_id).first()
    if group:
        group.group_name = name
        group.updated_at = utcnow()
    else:
        group = LineGroup(group_id=group_id, group_name=name)
        db.session.add(group)
    db.session.commit()
    return group


def handle_webhook_events(events: list) -> int:
    """
    Process webhook events. Returns the number of events acted on.

    - join (group source): record the group and confirm in the chat
    - text '!groupid' in a group: reply with the group id
    """
    handled = 0
    for event in events or []:
        if not isinstance(event, dict):
            continue
        source = event.get("source") or {}
        if source.get("type") != "group" or not source.get("groupId"):
            continue
        group_id = source["groupId"]

        if event.get("type") == "join":
            register_group(group_id)
            push_text(group_id, JOIN_CONFIRMATION)
            handled += 1
        elif event.get("type") == "message":
            message = event.get("message") or {}
            if message.get("type") == "text" and message.get("text") == "!groupid":
                push_text(group_id, f"📋 此群組 ID：\n{group_id}")
                handled += 1
    return handled
