"""Telegram application wiring for the review bot."""

from telegram.ext import (
    Application,
    ApplicationBuilder,
    CallbackQueryHandler,
    CommandHandler,
)

from .review_bot import ReviewBot


def build_application(bot_token: str, bot: ReviewBot) -> Application:
    """Configure the Telegram application instance."""
    application = ApplicationBuilder().token(bot_token).build()
    application.add_handler(CommandHandler("start", bot.handle_start))
    application.add_handler(CommandHandler("collections", bot.handle_collections))
    application.add_handler(CommandHandler("review", bot.handle_review))
    application.add_handler(CommandHandler("practice", bot.handle_practice))
    application.add_handler(CommandHandler("stat", bot.handle_stat))
    application.add_handler(CallbackQueryHandler(bot.handle_start_session, pattern=r"^rv_start:"))
    application.add_handler(CallbackQueryHandler(bot.handle_restart, pattern=r"^rv_again:"))
    application.add_handler(CallbackQueryHandler(bot.handle_judgement, pattern=r"^rv:"))
    return application
