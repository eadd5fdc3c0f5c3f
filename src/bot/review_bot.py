"""Telegram handlers that drive review sessions with inline keyboards."""

from __future__ import annotations

import logging
from contextlib import suppress
from datetime import datetime, timezone
from html import escape
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.constants import ParseMode
from telegram.error import TelegramError
from telegram.ext import ContextTypes

from src.db.items import CollectionSummary, list_collections, load_items
from src.db.learners import ensure_learner, get_learner_progress
from src.engine.errors import EngineError, EmptyDeck, SessionNotFound
from src.engine.mastery import category_of
from src.engine.outcomes import ReviewMode, judgements_for
from src.engine.proficiency import band_for_mastery
from src.engine.session import OutcomeResult
from src.services.sessions import ActiveSession, SessionRegistry


LOGGER = logging.getLogger(__name__)

_JUDGEMENT_LABELS = {
    "again": "Again",
    "hard": "Hard",
    "good": "Good",
    "easy": "Easy",
    "perfect": "Perfect",
    "still_learning": "Still learning",
    "learned": "Learned",
    "incorrect": "Wrong",
    "correct": "Right",
}


class ReviewBot:
    """Runs review sessions for Telegram chats; each chat is one learner."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        registry: SessionRegistry,
    ) -> None:
        self._session_factory = session_factory
        self._registry = registry

    async def _store_learner_profile(self, update: Update) -> None:
        chat = update.effective_chat
        user = update.effective_user
        if chat is None or user is None:
            return
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await ensure_learner(
                        session,
                        chat.id,
                        getattr(user, "first_name", None),
                        getattr(user, "last_name", None),
                    )
        except Exception:
            LOGGER.exception("Failed to store learner profile for chat %s.", chat.id)

    async def _collections_for(self, chat_id: int) -> List[CollectionSummary]:
        async with self._session_factory() as session:
            return await list_collections(session, chat_id)

    async def handle_start(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Greet the learner and list what the bot can do."""
        if not update.message:
            return

        await self._store_learner_profile(update)
        greeting = (
            "Hi! I will help you keep your vocabulary and grammar fresh.\n"
            "- /collections shows your notebooks;\n"
            "- /review runs a graded spaced-repetition review;\n"
            "- /practice runs a quick learned / still learning pass;\n"
            "- /stat shows your progress."
        )
        await update.message.reply_text(greeting)

    async def handle_collections(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if not update.message or update.effective_chat is None:
            return

        summaries = await self._collections_for(update.effective_chat.id)
        if not summaries:
            await update.message.reply_text("You have no collections yet.")
            return

        await update.message.reply_text(
            self._format_collections(summaries),
            parse_mode=ParseMode.HTML,
            reply_markup=self._build_collections_keyboard(summaries),
        )

    async def handle_review(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._start_from_command(update, context, ReviewMode.GRADED)

    async def handle_practice(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._start_from_command(update, context, ReviewMode.BINARY)

    async def _start_from_command(
        self,
        update: Update,
        context: ContextTypes.DEFAULT_TYPE,
        mode: ReviewMode,
    ) -> None:
        message = update.message
        chat = update.effective_chat
        if message is None or chat is None:
            return

        collection_id = self._collection_from_args(getattr(context, "args", None))
        if collection_id is None:
            summaries = await self._collections_for(chat.id)
            if not summaries:
                await message.reply_text("Create a collection first, then come back to review it.")
                return
            collection_id = summaries[0].id

        await self._open_session(message, collection_id, mode, chat.id)

    @staticmethod
    def _collection_from_args(args: Optional[List[str]]) -> Optional[int]:
        if not args:
            return None
        try:
            return int(args[0])
        except ValueError:
            return None

    async def handle_start_session(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        query = update.callback_query
        if query is None or query.data is None:
            return

        parts = query.data.split(":")
        if len(parts) != 3 or parts[0] != "rv_start":
            await query.answer()
            return

        try:
            collection_id = int(parts[1])
            mode = ReviewMode(parts[2])
        except ValueError:
            await query.answer("Invalid request.", show_alert=True)
            return

        await query.answer()
        chat = update.effective_chat
        if query.message is not None and chat is not None:
            await self._open_session(query.message, collection_id, mode, chat.id)

    async def _open_session(self, message, collection_id: int, mode: ReviewMode, chat_id: int) -> None:
        try:
            active = await self._registry.start(collection_id, mode, owner_id=chat_id)
        except EmptyDeck:
            await message.reply_text("This collection is empty. Add some items first.")
            return
        except EngineError as exc:
            await message.reply_text(exc.message)
            return

        await self._send_current_card(message, active)

    async def handle_judgement(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Record the learner's judgement for the card at the session cursor."""
        query = update.callback_query
        if query is None or query.data is None:
            return

        parts = query.data.split(":")
        if len(parts) != 4 or parts[0] != "rv":
            await query.answer()
            return

        session_id, raw_item_id, judgement = parts[1], parts[2], parts[3]
        try:
            item_id = int(raw_item_id)
        except ValueError:
            await query.answer("Invalid card.", show_alert=True)
            return

        try:
            active = self._owned_session(update, session_id)
            async with active.lock:
                result = await active.review.record_outcome(
                    item_id, judgement, now=datetime.now(timezone.utc)
                )
        except EngineError as exc:
            LOGGER.info("Rejected judgement %s for session %s: %s", judgement, session_id, exc)
            await query.answer(exc.message, show_alert=True)
            return

        with suppress(TelegramError):
            await query.edit_message_reply_markup(reply_markup=None)
        await query.answer(self._describe_outcome(result))

        message = query.message
        if message is None:
            return

        if result.completed:
            summary = active.review.summary()
            markup = None
            if summary.negative:
                markup = InlineKeyboardMarkup(
                    [[InlineKeyboardButton(
                        f"Review flagged ({summary.negative})",
                        callback_data=f"rv_again:{session_id}",
                    )]]
                )
            await message.reply_text(
                f"<b>Session complete</b>\n"
                f"✅ {summary.positive}  ·  🔁 {summary.negative}  ·  {summary.percentage}%",
                parse_mode=ParseMode.HTML,
                reply_markup=markup,
            )
            return

        await self._send_current_card(message, active)

    def _owned_session(self, update: Update, session_id: str) -> ActiveSession:
        active = self._registry.get(session_id)
        chat = update.effective_chat
        if chat is None or chat.id != active.owner_id:
            LOGGER.warning(
                "Chat %s sent a callback for session %s of learner %s.",
                getattr(chat, "id", None),
                session_id,
                active.owner_id,
            )
            raise SessionNotFound(session_id)
        return active

    async def handle_restart(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        query = update.callback_query
        if query is None or query.data is None:
            return

        parts = query.data.split(":")
        if len(parts) != 2 or parts[0] != "rv_again":
            await query.answer()
            return

        try:
            self._owned_session(update, parts[1])
            active = self._registry.restart_with_negatives(parts[1])
        except EngineError as exc:
            await query.answer(exc.message, show_alert=True)
            return

        await query.answer()
        with suppress(TelegramError):
            await query.edit_message_reply_markup(reply_markup=None)
        if query.message is not None:
            await self._send_current_card(query.message, active)

    async def handle_stat(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Show review counters and a CEFR band per collection."""
        if not update.message or update.effective_chat is None:
            return

        await self._store_learner_profile(update)
        chat_id = update.effective_chat.id

        async with self._session_factory() as session:
            stats = await get_learner_progress(session, chat_id)
            summaries = await list_collections(session, chat_id)
            bands = []
            for summary in summaries:
                items = await load_items(session, summary.id)
                average, value = band_for_mastery(item.mastery_level for item in items)
                bands.append((summary, average, value))

        if stats is None:
            await update.message.reply_text("Statistics will appear after your first review.")
            return

        lines = [
            "📊 <b>Progress</b>",
            f"🔁 <b>Reviews:</b> {stats.items_reviewed}",
            f"🌟 <b>Items mastered:</b> {stats.items_mastered}",
            f"📚 <b>Collections:</b> {stats.collections}",
        ]
        for summary, average, value in bands:
            lines.append(
                f"• {escape(summary.name)}: {average}% → <b>{value.band}</b> ({escape(value.description)})"
            )

        await update.message.reply_text("\n".join(lines), parse_mode=ParseMode.HTML)

    async def _send_current_card(self, message, active: ActiveSession) -> None:
        item = active.review.current_item
        if item is None:
            return
        await message.reply_text(
            self._format_card(active, item),
            parse_mode=ParseMode.HTML,
            reply_markup=self._build_judgement_keyboard(active.session_id, item.id, active.mode),
        )

    @staticmethod
    def _format_card(active: ActiveSession, item) -> str:
        position = active.review.cursor + 1
        total = len(active.review.items)
        lines = [
            f"<b>Card {position}/{total}</b> · <i>{category_of(item.mastery_level).label}</i>",
            "",
            f"<b>{escape(item.term)}</b>",
        ]
        if item.meaning:
            lines.append(f"<tg-spoiler>{escape(item.meaning)}</tg-spoiler>")
        if item.example:
            lines.append(f"<i>{escape(item.example)}</i>")
        return "\n".join(lines)

    @staticmethod
    def _build_judgement_keyboard(session_id: str, item_id: int, mode: ReviewMode) -> InlineKeyboardMarkup:
        buttons = [
            InlineKeyboardButton(
                _JUDGEMENT_LABELS[judgement.value],
                callback_data=f"rv:{session_id}:{item_id}:{judgement.value}",
            )
            for judgement in judgements_for(mode)
        ]
        return InlineKeyboardMarkup([buttons])

    @staticmethod
    def _build_collections_keyboard(summaries: List[CollectionSummary]) -> InlineKeyboardMarkup:
        rows = [
            [
                InlineKeyboardButton(f"Review {summary.name}", callback_data=f"rv_start:{summary.id}:graded"),
                InlineKeyboardButton("Practice", callback_data=f"rv_start:{summary.id}:binary"),
            ]
            for summary in summaries
        ]
        return InlineKeyboardMarkup(rows)

    @staticmethod
    def _format_collections(summaries: List[CollectionSummary]) -> str:
        lines = ["<b>Your collections</b>"]
        for summary in summaries:
            lines.append(
                f"• {escape(summary.name)} ({summary.kind}): {summary.mastered}/{summary.count} mastered"
            )
        return "\n".join(lines)

    @staticmethod
    def _describe_outcome(result: OutcomeResult) -> str:
        if result.category_before is not result.category_after:
            return (
                f"{result.mastery_before}% → {result.mastery_after}% "
                f"({result.category_before.label} → {result.category_after.label})"
            )
        return f"{result.mastery_before}% → {result.mastery_after}%"
