from __future__ import annotations

from typing import Dict, Optional, Sequence

import discord
import structlog
from discord.ext import commands

from application import services
from application.context import ExternalContext, ViewerContext, resolve_viewer
from application.lifecycle import LifecycleController, TransitionOutcome
from application.navigation import GuardAction, evaluate_guards
from application.state import SessionSnapshot, SessionStateStore
from domain.errors import PersistenceError
from domain.ledger import player_results, session_totals
from domain.models import Player, currency_symbol
from infrastructure.db.factory import Repositories

logger = structlog.get_logger(__name__)

HELP_TEXT = (
    "!register                          - create your profile\n"
    "!logout                            - unlink this Discord account\n"
    "!newclub <name>                    - create a club\n"
    "!join <code>                       - join a club with its code\n"
    "!newsession <name> [USD|ILS|EUR]   - start tracking a game\n"
    "!session <id>                      - show stage, roster and totals\n"
    "!addplayer <id> <name> [buyin]     - add a player\n"
    "!removeplayer <id> <player>        - remove a player\n"
    "!buyin <id> <player> <amount>      - record a buy-in\n"
    "!cashout <id> <player> <amount>    - record a cash-out\n"
    "!startchips <id>                   - start chip entry\n"
    "!finalize <id>                     - lock the session\n"
)

REDIRECT_HINTS = {
    "/": "Please `!register` first.",
    "/join": "Join a club first with `!join <code>` or create one with `!newclub <name>`.",
}

STORAGE_UNAVAILABLE = "Storage is unavailable right now, please try again."
BUSY_MESSAGE = "Another update to this session is in progress."


def _build_external_context(user: discord.abc.User) -> ExternalContext:
    """Create an `ExternalContext` from a Discord user."""

    return ExternalContext(
        provider="discord",
        provider_user_id=str(user.id),
        display_name=user.display_name or user.name,
    )


def _find_player(players: Sequence[Player], ref: str) -> Optional[Player]:
    """Match a player by ID, or by name ignoring case."""

    for player in players:
        if player.id == ref:
            return player
    lowered = ref.lower()
    for player in players:
        if player.name.lower() == lowered:
            return player
    return None


def format_snapshot(snapshot: SessionSnapshot) -> str:
    session = snapshot.session
    if session is None:
        return "Session not found."

    symbol = currency_symbol(session.currency)
    missing = snapshot.missing_buyin_player_ids
    lines = [f"**{session.name}** - stage: `{snapshot.stage.value}`"]

    for result in player_results(session.id, snapshot.players, snapshot.transactions):
        flag = " (no buy-in)" if result.player.id in missing else ""
        lines.append(
            f"{result.player.name}: in {symbol}{result.total_buyins:g}, "
            f"out {symbol}{result.total_cashouts:g}, P/L {symbol}{result.profit_loss:+g}{flag}"
        )

    totals = session_totals(session.id, snapshot.players, snapshot.transactions)
    lines.append(f"Total buy-ins: {symbol}{totals.total_buyins:g}")

    gate = snapshot.chip_entry_gate
    if not session.chip_entry_started:
        lines.append("Ready for chip entry." if gate.allowed else f"Chip entry blocked: {gate.message}")
    return "\n".join(lines)


class SessionControllers:
    """
    Lifecycle controllers for sessions that exist, keyed by session ID.

    Everyone issuing commands against a session shares its controller, and
    so its in-progress flag. IDs that do not resolve to a session are never
    kept.
    """

    def __init__(self, repos: Repositories) -> None:
        self._repos = repos
        self._controllers: Dict[str, LifecycleController] = {}

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._controllers

    def __len__(self) -> int:
        return len(self._controllers)

    def get(self, session_id: str) -> Optional[LifecycleController]:
        return self._controllers.get(session_id)

    async def load(self, session_id: str) -> Optional[LifecycleController]:
        """
        Reload the session and return its controller, or None if there is
        no such session.

        Raises PersistenceError when the session could not be read at all.
        """

        controller = self._controllers.get(session_id)
        if controller is None:
            store = SessionStateStore(
                session_id,
                self._repos.sessions,
                self._repos.players,
                self._repos.transactions,
            )
            controller = LifecycleController(store, self._repos.sessions)

        reloaded = await controller.reload()
        if controller.snapshot.session is None:
            if not controller.in_progress and self._controllers.get(session_id) is controller:
                del self._controllers[session_id]
            if not reloaded and controller.load_error is not None:
                raise PersistenceError(controller.load_error)
            return None

        registered = self._controllers.setdefault(session_id, controller)
        if registered is not controller:
            await registered.reload()
        return registered


def create_discord_bot(repos: Repositories) -> commands.Bot:
    """
    Configure and return a Discord bot wired to the application layer.

    This module contains only Discord-specific concerns: parsing commands
    and rendering results.
    """

    intents = discord.Intents.default()
    intents.message_content = True

    # Disable the default help command so we can provide our own `!help`.
    bot = commands.Bot(command_prefix="!", intents=intents, help_command=None)
    controllers = SessionControllers(repos)

    async def guarded(ctx: commands.Context, path: str) -> Optional[ViewerContext]:
        """Resolve the caller and run the route guards for `path`."""

        try:
            viewer = resolve_viewer(_build_external_context(ctx.author), repos.identities, repos.clubs)
        except PersistenceError as exc:
            logger.error("viewer_lookup_failed", error=str(exc), exc_info=exc)
            await ctx.send(STORAGE_UNAVAILABLE)
            return None
        decision = evaluate_guards(viewer, path)
        if decision.action is GuardAction.REDIRECT:
            await ctx.send(REDIRECT_HINTS.get(decision.location, "Not allowed."))
            return None
        if decision.action is GuardAction.PENDING:
            await ctx.send("Still loading, try again in a moment.")
            return None
        return viewer

    async def open_session(ctx: commands.Context, session_id: str) -> Optional[LifecycleController]:
        """Guard, then load the session; replies and returns None on any failure."""

        if await guarded(ctx, f"/session/{session_id}") is None:
            return None
        try:
            controller = await controllers.load(session_id)
        except PersistenceError:
            await ctx.send(STORAGE_UNAVAILABLE)
            return None
        if controller is None:
            await ctx.send("Session not found.")
        return controller

    async def show(ctx: commands.Context, controller: LifecycleController) -> None:
        await controller.reload()
        await ctx.send(format_snapshot(controller.snapshot))

    @bot.event
    async def on_ready():
        logger.info("discord_ready", user=str(bot.user), user_id=bot.user.id)

    @bot.command(name="help")
    async def help_cmd(ctx: commands.Context):
        await ctx.send(f"```\n{HELP_TEXT}```")

    @bot.command(name="register")
    async def register_cmd(ctx: commands.Context):
        external_ctx = _build_external_context(ctx.author)
        result = services.register_profile(external_ctx, repos.identities)
        if not result.success:
            await ctx.send(result.error_message or "Could not register.")
            return
        await ctx.send(f"Welcome, {external_ctx.display_name}!")

    @bot.command(name="logout")
    async def logout_cmd(ctx: commands.Context):
        external_ctx = _build_external_context(ctx.author)
        try:
            viewer = resolve_viewer(external_ctx, repos.identities, repos.clubs)
        except PersistenceError:
            await ctx.send(STORAGE_UNAVAILABLE)
            return
        result = services.logout(external_ctx, viewer, repos.identities)
        await ctx.send("Logged out." if result.success else result.error_message)

    @bot.command(name="newclub")
    async def newclub_cmd(ctx: commands.Context, *, name: str):
        viewer = await guarded(ctx, "/join")
        if viewer is None:
            return
        result = services.create_club(name, viewer, repos.clubs)
        if not result.success:
            await ctx.send(result.error_message or "Could not create club.")
            return
        try:
            club = repos.clubs.get_club(result.entity_id)
        except PersistenceError:
            await ctx.send("Club created. Its join code could not be loaded, try again later.")
            return
        await ctx.send(f"Club **{club.name}** created. Join code: `{club.join_code}`")

    @bot.command(name="join")
    async def join_cmd(ctx: commands.Context, code: str):
        viewer = await guarded(ctx, "/join")
        if viewer is None:
            return
        result = services.join_club_by_code(code, viewer, repos.clubs)
        await ctx.send("Joined the club." if result.success else result.error_message)

    @bot.command(name="newsession")
    async def newsession_cmd(ctx: commands.Context, name: str, currency: str = "USD"):
        viewer = await guarded(ctx, "/sessions")
        if viewer is None:
            return
        result = services.create_session(
            name,
            currency.upper(),
            repos.sessions,
            club_id=viewer.active_club_id,
        )
        if not result.success:
            await ctx.send(result.error_message or "Could not create session.")
            return
        await ctx.send(f"Session created: `{result.entity_id}`")

    @bot.command(name="session")
    async def session_cmd(ctx: commands.Context, session_id: str):
        controller = await open_session(ctx, session_id)
        if controller is None:
            return
        await ctx.send(format_snapshot(controller.snapshot))

    @bot.command(name="addplayer")
    async def addplayer_cmd(
        ctx: commands.Context,
        session_id: str,
        name: str,
        buyin: Optional[float] = None,
    ):
        controller = await open_session(ctx, session_id)
        if controller is None:
            return
        result = services.add_player(
            session_id,
            name,
            repos.sessions,
            repos.players,
            repos.transactions,
            buyin_amount=buyin,
        )
        if not result.success:
            await ctx.send(result.error_message or "Could not add player.")
            return
        await show(ctx, controller)

    @bot.command(name="removeplayer")
    async def removeplayer_cmd(ctx: commands.Context, session_id: str, player_ref: str):
        controller = await open_session(ctx, session_id)
        if controller is None:
            return
        player = _find_player(controller.snapshot.players, player_ref)
        if player is None:
            await ctx.send("No such player in this session.")
            return
        result = services.remove_player(session_id, player.id, repos.sessions, repos.players)
        if not result.success:
            await ctx.send(result.error_message or "Could not remove player.")
            return
        await show(ctx, controller)

    async def _record(ctx: commands.Context, session_id: str, player_ref: str, amount: float, cashout: bool):
        controller = await open_session(ctx, session_id)
        if controller is None:
            return
        player = _find_player(controller.snapshot.players, player_ref)
        if player is None:
            await ctx.send("No such player in this session.")
            return
        record = services.record_cashout if cashout else services.record_buyin
        result = record(session_id, player.id, amount, repos.sessions, repos.players, repos.transactions)
        if not result.success:
            await ctx.send(result.error_message or "Could not record transaction.")
            return
        await show(ctx, controller)

    @bot.command(name="buyin")
    async def buyin_cmd(ctx: commands.Context, session_id: str, player_ref: str, amount: float):
        await _record(ctx, session_id, player_ref, amount, cashout=False)

    @bot.command(name="cashout")
    async def cashout_cmd(ctx: commands.Context, session_id: str, player_ref: str, amount: float):
        await _record(ctx, session_id, player_ref, amount, cashout=True)

    async def _transition(ctx: commands.Context, session_id: str, finalize: bool):
        existing = controllers.get(session_id)
        if existing is not None and existing.in_progress:
            await ctx.send(BUSY_MESSAGE)
            return

        # Gate against fresh facts, never against a cached snapshot.
        controller = await open_session(ctx, session_id)
        if controller is None:
            return
        if finalize:
            result = await controller.finalize_session()
        else:
            result = await controller.start_chip_entry()

        if result.outcome is TransitionOutcome.APPLIED:
            if result.error_message:
                await ctx.send(f"Saved, but {result.error_message} Run `!session {session_id}` to refresh.")
            else:
                await ctx.send(f"Stage is now `{controller.stage.value}`.")
        elif result.outcome is TransitionOutcome.BUSY:
            await ctx.send(BUSY_MESSAGE)
        else:
            await ctx.send(result.error_message or "Transition failed.")

    @bot.command(name="startchips")
    async def startchips_cmd(ctx: commands.Context, session_id: str):
        await _transition(ctx, session_id, finalize=False)

    @bot.command(name="finalize")
    async def finalize_cmd(ctx: commands.Context, session_id: str):
        await _transition(ctx, session_id, finalize=True)

    return bot
