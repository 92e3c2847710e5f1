"""Telegram command handlers built on python-telegram-bot.

Commands:
- /start, /help   static HTML guides
- /coin <symbol>  CoinMarketCap quote with Chart/Trade/News/Refresh buttons
- /tcapy          full signal report (restricted to the configured group/topic)

``send_report`` and ``notify`` are also used by the scheduler to post into
the group outside of any command.
"""

from telegram import (
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    LinkPreviewOptions,
    Message,
    Update,
)
from telegram.constants import ChatAction, ParseMode
from telegram.error import BadRequest, TelegramError
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
)

from tcapy_bot.chat.formatting import (
    GENERIC_ERROR_TEXT,
    HELP_TEXT,
    MISSING_SYMBOL_TEXT,
    SIGNAL_FAILED_TEXT,
    STATUS_COLLECTING_TEXT,
    WELCOME_TEXT,
    WRONG_CHAT_TEXT,
    WRONG_TOPIC_TEXT,
    chart_url,
    describe_market_error,
    news_url,
    render_coin_info,
    render_signal_report,
    trade_url,
)
from tcapy_bot.config import SignalSettings, TelegramSettings
from tcapy_bot.exceptions import MarketDataError
from tcapy_bot.logging import get_logger
from tcapy_bot.market_data.coinmarketcap import CoinMarketCapClient
from tcapy_bot.market_data.feed import MarketFeed
from tcapy_bot.models import CoinQuote, SignalReport
from tcapy_bot.signals.engine import SignalEngine

logger = get_logger(__name__)

REFRESH_PREFIX = "refresh_"
_NO_PREVIEW = LinkPreviewOptions(is_disabled=True)


def coin_keyboard(quote: CoinQuote) -> InlineKeyboardMarkup:
    """Inline buttons attached to a /coin reply."""
    symbol = quote.symbol.upper()
    return InlineKeyboardMarkup(
        [
            [
                InlineKeyboardButton("Chart", url=chart_url(quote.slug)),
                InlineKeyboardButton("Trade", url=trade_url(symbol)),
            ],
            [
                InlineKeyboardButton("News", url=news_url(quote.slug)),
                InlineKeyboardButton("Refresh", callback_data=f"{REFRESH_PREFIX}{symbol}"),
            ],
        ]
    )


class SignalBot:
    """Telegram front-end for the signal engine and quote lookups.

    Args:
        settings: Bot token and the /tcapy chat/topic allow-list.
        signal_settings: Asset name and supply override used when rendering.
        engine: Builds signal reports.
        feed: Market feed the engine consumes.
        quotes: CoinMarketCap client for /coin.
        application: Pre-built Application (tests). Built lazily from the
            token otherwise.
    """

    def __init__(
        self,
        settings: TelegramSettings,
        signal_settings: SignalSettings,
        engine: SignalEngine,
        feed: MarketFeed,
        quotes: CoinMarketCapClient,
        application: Application | None = None,
    ) -> None:
        self._settings = settings
        self._signal_settings = signal_settings
        self._engine = engine
        self._feed = feed
        self._quotes = quotes
        self._application = application

    @property
    def application(self) -> Application:
        """Get or create the Application instance."""
        if self._application is None:
            self._application = self._create_application()
        return self._application

    def _create_application(self) -> Application:
        app = Application.builder().token(self._settings.bot_token.get_secret_value()).build()
        self.register_handlers(app)
        return app

    def register_handlers(self, app: Application) -> None:
        """Attach every command, callback and error handler to ``app``."""
        app.add_handler(CommandHandler("start", self._handle_start))
        app.add_handler(CommandHandler("help", self._handle_help))
        app.add_handler(CommandHandler("coin", self._handle_coin))
        # CommandHandler also matches /tcapy@<bot username>
        app.add_handler(CommandHandler("tcapy", self._handle_tcapy))
        app.add_handler(
            CallbackQueryHandler(self._handle_refresh, pattern=f"^{REFRESH_PREFIX}")
        )
        app.add_error_handler(self._handle_error)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Initialize the application and start long polling."""
        app = self.application
        await app.initialize()
        await app.start()
        await app.updater.start_polling()
        logger.info("telegram_polling_started", username=app.bot.username)

    async def stop(self) -> None:
        """Stop polling and shut the application down. Safe to call twice."""
        if self._application is None:
            return
        app = self._application
        if app.updater is not None and app.updater.running:
            await app.updater.stop()
        if app.running:
            await app.stop()
        await app.shutdown()
        logger.info("telegram_stopped")

    # ------------------------------------------------------------------
    # Outbound posting
    # ------------------------------------------------------------------

    async def send_report(
        self, chat_id: int | str, thread_id: int | None = None
    ) -> SignalReport:
        """Generate a fresh signal report and post it to ``chat_id``."""
        report = await self._engine.generate(self._feed)
        text = render_signal_report(report, self._signal_settings)
        await self.application.bot.send_message(
            chat_id=chat_id,
            text=text,
            parse_mode=ParseMode.HTML,
            link_preview_options=_NO_PREVIEW,
            message_thread_id=thread_id,
        )
        logger.info(
            "signal_sent",
            chat_id=chat_id,
            thread_id=thread_id,
            timeframe=report.signal.window.value,
            change=str(report.signal.percent_change),
        )
        return report

    async def notify(self, chat_id: int | str, text: str, thread_id: int | None = None) -> None:
        """Post a plain HTML notice (used for scheduled-run failures)."""
        await self.application.bot.send_message(
            chat_id=chat_id,
            text=text,
            parse_mode=ParseMode.HTML,
            message_thread_id=thread_id,
        )

    # ------------------------------------------------------------------
    # Access control
    # ------------------------------------------------------------------

    def check_access(self, chat_id: int, thread_id: int | None, is_forum: bool) -> str | None:
        """Return a rejection message, or None if /tcapy may run here.

        The topic allow-list is only enforced in forum chats; plain groups
        have no topics.
        """
        allowed_chat = self._settings.group_chat_id
        if allowed_chat and str(chat_id) != str(allowed_chat):
            return WRONG_CHAT_TEXT

        allowed_thread = self._settings.message_thread_id
        if allowed_thread is not None and is_forum and thread_id != allowed_thread:
            return WRONG_TOPIC_TEXT
        return None

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _handle_start(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await update.effective_message.reply_html(WELCOME_TEXT)

    async def _handle_help(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await update.effective_message.reply_html(HELP_TEXT)

    async def _send_typing(
        self, context: ContextTypes.DEFAULT_TYPE, chat_id: int, thread_id: int | None
    ) -> None:
        try:
            await context.bot.send_chat_action(
                chat_id=chat_id, action=ChatAction.TYPING, message_thread_id=thread_id
            )
        except TelegramError as e:
            logger.warning("typing_action_failed", chat_id=chat_id, error=str(e))

    async def _handle_coin(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        message = update.effective_message
        if not context.args:
            await message.reply_text(MISSING_SYMBOL_TEXT)
            return

        symbol = context.args[0].strip().upper()
        await self._send_typing(context, update.effective_chat.id, message.message_thread_id)

        try:
            quote = await self._quotes.fetch_quote(symbol)
        except MarketDataError as e:
            logger.error("coin_lookup_failed", symbol=symbol, error=str(e), status=e.status)
            await message.reply_text(describe_market_error(e, symbol))
            return

        await message.reply_html(
            render_coin_info(quote, self._signal_settings),
            reply_markup=coin_keyboard(quote),
            link_preview_options=_NO_PREVIEW,
        )
        logger.info("coin_info_sent", symbol=symbol)

    async def _handle_refresh(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        query = update.callback_query
        symbol = query.data.removeprefix(REFRESH_PREFIX)

        try:
            quote = await self._quotes.fetch_quote(symbol)
        except MarketDataError as e:
            logger.error("coin_refresh_failed", symbol=symbol, error=str(e), status=e.status)
            await query.answer(describe_market_error(e, symbol), show_alert=True)
            return

        await query.answer()
        try:
            await query.edit_message_text(
                render_coin_info(quote, self._signal_settings),
                parse_mode=ParseMode.HTML,
                reply_markup=coin_keyboard(quote),
                link_preview_options=_NO_PREVIEW,
            )
        except BadRequest as e:
            # Telegram rejects edits that leave the message unchanged
            if "not modified" not in str(e).lower():
                raise
            logger.debug("coin_refresh_unchanged", symbol=symbol)

    async def _handle_tcapy(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        chat = update.effective_chat
        message = update.effective_message
        thread_id = message.message_thread_id

        denial = self.check_access(chat.id, thread_id, bool(chat.is_forum))
        if denial is not None:
            logger.info(
                "command_rejected",
                command="tcapy",
                chat_id=chat.id,
                thread_id=thread_id,
                allowed_chat=self._settings.group_chat_id,
                allowed_thread=self._settings.message_thread_id,
            )
            await message.reply_text(denial)
            return

        await self._send_typing(context, chat.id, thread_id)

        status: Message | None = None
        try:
            status = await message.reply_text(STATUS_COLLECTING_TEXT)
        except TelegramError as e:
            logger.warning("status_message_failed", error=str(e))

        try:
            await self.send_report(chat.id, thread_id)
        except Exception as e:
            logger.error("tcapy_command_failed", error=str(e), exc_info=True)
            try:
                if status is not None:
                    await status.edit_text(SIGNAL_FAILED_TEXT)
                else:
                    await message.reply_text(SIGNAL_FAILED_TEXT)
            except TelegramError as reply_error:
                logger.error("error_reply_failed", error=str(reply_error))
            return

        if status is not None:
            try:
                await status.delete()
            except TelegramError as e:
                logger.debug("status_message_delete_failed", error=str(e))

    async def _handle_error(self, update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Global error handler: log, then tell the user something went wrong."""
        chat_id = None
        if isinstance(update, Update) and update.effective_chat is not None:
            chat_id = update.effective_chat.id
        logger.error(
            "telegram_handler_error",
            error=str(context.error),
            chat_id=chat_id,
            exc_info=context.error,
        )

        if isinstance(update, Update) and update.effective_message is not None:
            try:
                await update.effective_message.reply_text(GENERIC_ERROR_TEXT)
            except TelegramError as e:
                logger.error("error_reply_failed", error=str(e))
