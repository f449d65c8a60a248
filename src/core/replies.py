"""Reply templates sent to the operator.

Keeping every user-facing string here prevents drift between commands and
background jobs. All replies use Telegram HTML; user-supplied values are
escaped.
"""

from __future__ import annotations

import html
from datetime import datetime, timezone
from typing import Iterable, Optional

from core.models import Channel, DiscoveryReport, RestoreProgress, RestoreReport

DIVIDER = "──────────────"


def _esc(value: object) -> str:
    return html.escape(str(value if value is not None else ""), quote=False)


def _format_ts(seconds: float) -> str:
    if not seconds:
        return "unknown"
    return datetime.fromtimestamp(seconds, tz=timezone.utc).strftime("%Y-%m-%d %H:%M UTC")


def progress_bar(percent: int, width: int = 20) -> str:
    """Render a fixed-width text bar, e.g. ``█████░░░░░``."""

    percent = max(0, min(100, percent))
    filled = round(width * percent / 100)
    return "█" * filled + "░" * (width - filled)


def start() -> str:
    return (
        "🤖 <b>Welcome to the channel backup bot!</b>\n\n"
        "<b>Commands:</b>\n"
        "/addchannel [channel] - register a channel\n"
        "/channels - list your channels\n"
        "/backup - backup statistics\n"
        "/restore - copy a backup into another channel\n"
        "/removechannel [channel] - unregister a channel\n"
        "/notify on|off - backup notifications\n"
        "/help - full guide\n\n"
        "<b>Examples:</b>\n"
        "• <code>/addchannel @mychannel</code>\n"
        "• <code>/addchannel -1001234567890</code>\n\n"
        "Every new post in a registered channel is backed up automatically."
    )


def help_text() -> str:
    return (
        "📖 <b>Channel backup bot guide</b>\n\n"
        f"{DIVIDER}\n\n"
        "<b>Getting started</b>\n"
        "1. Add the bot to your channel\n"
        "2. Make it an admin allowed to post and delete messages\n"
        "3. Send <code>/addchannel @yourchannel</code>\n\n"
        "<b>/addchannel [channel]</b> register a channel and scan its history\n"
        "<b>/channels</b> list registered channels\n"
        "<b>/backup</b> backup counts per channel\n"
        "<b>/restore [source] [target]</b> replay a backup, or /restore alone to pick with buttons\n"
        "<b>/removechannel [channel]</b> unregister a channel (backups are kept)\n"
        "<b>/manualbackup [channel]</b> save messages you forward from that channel\n"
        "<b>/stopbackup</b> stop saving forwarded messages\n"
        "<b>/notify on|off</b> toggle backup notifications\n"
        "<b>/cancel</b> abort a pending restore\n\n"
        f"{DIVIDER}\n\n"
        "• Text, photos, videos, files, audio, animations and stickers are kept\n"
        "• Media larger than 25 MB is not backed up\n"
        "• Restores keep the original message order\n"
        "• The bot must be an admin in the destination channel too"
    )


def addchannel_usage() -> str:
    return (
        "📝 <b>Register a channel</b>\n\n"
        "<code>/addchannel [channel]</code>\n\n"
        "• <code>/addchannel @mychannel</code>\n"
        "• <code>/addchannel -1001234567890</code>\n\n"
        "Add the bot to the channel as an admin first."
    )


def removechannel_usage() -> str:
    return (
        "🗑 <b>Unregister a channel</b>\n\n"
        "<code>/removechannel [channel]</code>\n\n"
        "Existing backups are not deleted."
    )


def manualbackup_usage() -> str:
    return (
        "📥 <b>Manual backup</b>\n\n"
        "<code>/manualbackup [channel]</code>\n\n"
        "Then forward messages from that channel to me. Send /stopbackup when done."
    )


def restore_usage() -> str:
    return (
        "📤 <b>Restore a backup</b>\n\n"
        "<code>/restore [source] [target]</code>\n"
        "<code>/restore @old @new</code>\n\n"
        "Send /restore alone to pick the source from your channels.\n"
        "The bot must be an admin in both channels."
    )


def checking_channel() -> str:
    return "⏳ Checking channel..."


def invalid_channel(raw_value: str) -> str:
    return (
        "❌ <b>Cannot identify the channel</b> "
        f"<code>{_esc(raw_value)}</code>\n\n"
        "Use <code>@username</code> or a numeric id, and make sure the channel is "
        "public or the bot is a member."
    )


def channel_unreachable() -> str:
    return (
        "❌ <b>Cannot access the channel!</b>\n\n"
        "1. Add the bot to the channel\n"
        "2. Make it an admin\n"
        "3. Allow it to post messages\n\n"
        "Wait a few seconds after adding the bot and try again."
    )


def channel_already_added(title: str, channel_id: str) -> str:
    return (
        "⚠️ <b>This channel is already added!</b>\n\n"
        f"📺 <b>{_esc(title)}</b>\n"
        f"🆔 <code>{_esc(channel_id)}</code>\n\n"
        "Use /channels to see your list."
    )


def channel_added(channel: Channel) -> str:
    lines = [
        "✅ <b>Channel added!</b>",
        "",
        f"📺 <b>{_esc(channel.title)}</b>",
        f"🆔 <code>{_esc(channel.id)}</code>",
    ]
    if channel.username:
        lines.append(f"👤 @{_esc(channel.username)}")
    lines.extend(
        [
            f"📅 {_format_ts(channel.added_at / 1000)}",
            "",
            "💾 New posts are backed up from now on. Scanning existing history in the background...",
        ]
    )
    return "\n".join(lines)


def channel_not_registered() -> str:
    return "❌ This channel is not in your list!"


def channel_removed(channel: Channel) -> str:
    return (
        "✅ <b>Channel removed.</b>\n\n"
        f"📺 <b>{_esc(channel.title)}</b>\n"
        f"🆔 <code>{_esc(channel.id)}</code>\n\n"
        "💾 Its backups are kept and can still be restored."
    )


def no_channels() -> str:
    return (
        "❌ <b>You have not added any channels yet!</b>\n\n"
        "<code>/addchannel @yourchannel</code>\n"
        "<code>/addchannel -1001234567890</code>"
    )


def channel_list(rows: Iterable[tuple[Channel, int]]) -> str:
    lines = ["📋 <b>Your channels:</b>", ""]
    for index, (channel, count) in enumerate(rows, start=1):
        lines.append(f"{index}. <b>{_esc(channel.title)}</b>")
        lines.append(f"   🆔 <code>{_esc(channel.id)}</code>")
        if channel.username:
            lines.append(f"   👤 @{_esc(channel.username)}")
        lines.append(f"   💾 {count} messages backed up")
        lines.append(f"   📅 added {_format_ts(channel.added_at / 1000)}")
        lines.append("")
    lines.append("To remove one: <code>/removechannel [id]</code>")
    return "\n".join(lines)


def backup_summary(rows: Iterable[tuple[Channel, int, Optional[int]]]) -> str:
    lines = ["💾 <b>Backup summary:</b>", ""]
    total = 0
    for channel, count, last_date in rows:
        total += count
        lines.append(f"📺 <b>{_esc(channel.title)}</b>")
        lines.append(f"   🆔 <code>{_esc(channel.id)}</code>")
        lines.append(f"   💾 {count} messages")
        if count and last_date:
            lines.append(f"   📅 last backup {_format_ts(last_date)}")
        lines.append("")
    lines.append(f"📊 <b>Total:</b> {total} messages")
    lines.append("")
    lines.append("Use /restore to copy a backup into another channel.")
    return "\n".join(lines)


def owner_post_saved(title: str, message_id: int) -> str:
    return f"💾 New post #{message_id} in <b>{_esc(title)}</b> backed up."


def discovery_started(title: str) -> str:
    return f"🔍 Scanning the history of <b>{_esc(title)}</b>..."


def discovery_progress(title: str, saved: int, skipped: int, scanned: int, current_id: int) -> str:
    return (
        f"🔍 Scanning <b>{_esc(title)}</b>\n\n"
        f"💾 Saved: {saved}\n"
        f"⏭ Already backed up: {skipped}\n"
        f"🔢 Checked: {scanned} (now at #{current_id})"
    )


def discovery_finished(title: str, report: DiscoveryReport) -> str:
    return (
        f"✅ <b>History scan of {_esc(title)} finished</b>\n\n"
        f"💾 Saved: {report.saved_count}\n"
        f"⏭ Already backed up: {report.skipped_count}\n"
        f"🔢 Checked: {report.scanned_count}"
    )


def discovery_failed(title: str, report: DiscoveryReport) -> str:
    return (
        f"⚠️ <b>History scan of {_esc(title)} stopped early</b>\n\n"
        f"💾 Saved before the error: {report.saved_count}\n"
        f"🔢 Checked: {report.scanned_count}\n\n"
        "New posts are still backed up automatically."
    )


def reconcile_found(title: str, count: int) -> str:
    return f"🔄 Periodic check found <b>{count}</b> new messages in <b>{_esc(title)}</b> and backed them up."


def restore_pick_source() -> str:
    return "📤 <b>Choose the channel to restore from:</b>"


def restore_ask_target(title: str) -> str:
    return (
        f"📤 Source: <b>{_esc(title)}</b>\n\n"
        "Now send the destination channel (<code>@username</code> or id).\n"
        "Send /cancel to abort."
    )


def restore_cancelled() -> str:
    return "✖️ Restore cancelled."


def nothing_to_cancel() -> str:
    return "Nothing to cancel."


def restore_unreachable() -> str:
    return (
        "❌ <b>Cannot access the channels!</b>\n\n"
        "• The bot must be an admin in both channels\n"
        "• It must be allowed to post\n"
        "• Check the ids or usernames"
    )


def restore_empty(title: str, channel_id: str) -> str:
    return (
        "❌ <b>No backups found for this channel!</b>\n\n"
        f"📺 <b>{_esc(title)}</b>\n"
        f"🆔 <code>{_esc(channel_id)}</code>"
    )


def restore_starting(source_title: str, target_title: str, count: int) -> str:
    return (
        "⏳ <b>Starting restore...</b>\n\n"
        f"📺 From: <b>{_esc(source_title)}</b>\n"
        f"📺 To: <b>{_esc(target_title)}</b>\n"
        f"💾 Messages: {count}\n\n"
        "This can take a few minutes."
    )


def restore_progress(target_title: str, progress: RestoreProgress) -> str:
    header = "✅ <b>Restore finished</b>" if progress.final else "⏳ <b>Restoring...</b>"
    return (
        f"{header}\n\n"
        f"{progress_bar(progress.percent)} {progress.percent}%\n\n"
        f"✅ Restored: {progress.restored}\n"
        f"❌ Failed: {progress.failed}\n"
        f"📦 {progress.processed}/{progress.total}\n"
        f"📺 To: <b>{_esc(target_title)}</b>"
    )


def restore_finished(target_title: str, target_id: str, report: RestoreReport) -> str:
    return (
        "✅ <b>Restore finished!</b>\n\n"
        f"📊 Restored: {report.restored_count}\n"
        f"❌ Failed: {report.failed_count}\n"
        f"📺 <b>{_esc(target_title)}</b>\n"
        f"🆔 <code>{_esc(target_id)}</code>"
    )


def restore_failed() -> str:
    return (
        "❌ <b>Restore stopped.</b>\n\n"
        "• The bot may lack permissions\n"
        "• Telegram may be rate limiting\n"
        "• The connection may have failed\n\n"
        "Try again in a few minutes."
    )


def notify_status(enabled: bool) -> str:
    state = "on" if enabled else "off"
    return f"🔔 Notifications are <b>{state}</b>. Use <code>/notify on</code> or <code>/notify off</code>."


def manual_backup_armed(title: str) -> str:
    return (
        f"📥 Manual backup for <b>{_esc(title)}</b> is on.\n\n"
        "Forward messages from that channel to me. Send /stopbackup when done."
    )


def manual_backup_stopped() -> str:
    return "📥 Manual backup is off."


def manual_saved(message_id: int) -> str:
    return f"💾 Message #{message_id} saved."


def manual_duplicate(message_id: int) -> str:
    return f"⏭ Message #{message_id} was already backed up."


def manual_wrong_source() -> str:
    return "⚠️ Forward messages from the channel you chose with /manualbackup."


def manual_oversized() -> str:
    return "⚠️ Files larger than 25 MB are not backed up."


def request_failed() -> str:
    return (
        "❌ <b>Something went wrong.</b>\n\n"
        "Please try again in a moment. Make sure the bot is an admin in the channel."
    )


def unknown_command() -> str:
    return "Unknown command. Send /help for the list."
