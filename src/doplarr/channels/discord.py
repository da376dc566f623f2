"""Discord channel adapter."""

from __future__ import annotations

from collections.abc import Sequence

import discord
from discord import app_commands, ui
from loguru import logger

from doplarr.core.details import DetailsState
from doplarr.core.dispatcher import Dispatcher
from doplarr.core.interaction import (
    DETAIL_SCOPE,
    RESULT_SCOPE,
    SUBMIT_SCOPE,
    format_correlation_id,
)
from doplarr.core.models import ContinuationEvent, DropdownOption, MediaDisplayInfo, SuccessMessage
from doplarr.providers.base import MediaKind

TOP_LEVEL_COMMAND_NAME = "request"

ACCENT_COLOR = 0xCE4A28
MAX_TEXT_CONTENT_LENGTH = 4000
MAX_OPTION_TEXT_LENGTH = 100

_SCOPES = frozenset({RESULT_SCOPE, DETAIL_SCOPE, SUBMIT_SCOPE})


def _clip(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return f"{text[: limit - 3]}..."


def _layout(*items: ui.Item[ui.LayoutView]) -> ui.LayoutView:
    # Components are routed through on_interaction, never through view callbacks,
    # so the view is stopped before it is sent and discord.py does not track it.
    view = ui.LayoutView(timeout=None)
    for item in items:
        view.add_item(item)
    view.stop()
    return view


def _select_row(custom_id: str, options: Sequence[DropdownOption], placeholder: str | None = None) -> ui.ActionRow:
    select: ui.Select[ui.LayoutView] = ui.Select(
        custom_id=custom_id,
        placeholder=placeholder,
        options=[
            discord.SelectOption(
                label=_clip(option.title or "-", MAX_OPTION_TEXT_LENGTH),
                value=str(index),
                description=_clip(option.description, MAX_OPTION_TEXT_LENGTH) if option.description else None,
            )
            for index, option in enumerate(options)
        ],
    )
    return ui.ActionRow(select)


def results_view(session_id: str, options: Sequence[DropdownOption]) -> ui.LayoutView:
    return _layout(
        ui.Container(
            ui.TextDisplay("# Search Results"),
            ui.Separator(),
            _select_row(format_correlation_id(RESULT_SCOPE, session_id), options),
            accent_colour=ACCENT_COLOR,
        )
    )


def _media_header(info: MediaDisplayInfo) -> list[ui.Item[ui.LayoutView]]:
    texts = [ui.TextDisplay(f"# {info.title}")]
    if info.subtitle:
        texts.append(ui.TextDisplay(f"-# {info.subtitle}"))
    if info.description:
        texts.append(ui.TextDisplay(_clip(info.description, MAX_TEXT_CONTENT_LENGTH)))
    if info.thumbnail_url:
        return [ui.Section(*texts, accessory=ui.Thumbnail(info.thumbnail_url))]
    return list(texts)


def details_view(session_id: str, info: MediaDisplayInfo, state: DetailsState) -> ui.LayoutView:
    """Media overview, one chooser per pending field, settled fields as text, and the Request button."""
    container = ui.Container(*_media_header(info), accent_colour=ACCENT_COLOR)
    for field in (*state.fixed, *state.fields):
        container.add_item(ui.Separator())
        if field.selection is None:
            container.add_item(ui.TextDisplay(f"### {field.title}"))
            container.add_item(_select_row(format_correlation_id(DETAIL_SCOPE, session_id, field.title), field.options))
        else:
            container.add_item(ui.TextDisplay(f"### {field.title}\n{field.selection.title}"))

    container.add_item(ui.Separator())
    request_button: ui.Button[ui.LayoutView] = ui.Button(
        style=discord.ButtonStyle.primary,
        label="Request",
        custom_id=format_correlation_id(SUBMIT_SCOPE, session_id),
        disabled=not state.submit_enabled,
    )
    container.add_item(ui.ActionRow(request_button))
    return _layout(container)


def message_view(text: str) -> ui.LayoutView:
    return _layout(ui.TextDisplay(_clip(text, MAX_TEXT_CONTENT_LENGTH)))


def completion_view(message: SuccessMessage) -> ui.LayoutView:
    return _layout(
        ui.Container(
            ui.TextDisplay("# Request Submitted"),
            ui.TextDisplay(message.description),
            accent_colour=ACCENT_COLOR,
        )
    )


def success_view(user_id: int, message: SuccessMessage) -> ui.LayoutView:
    description = f"{message.description}\n\n-# Requested by <@{user_id}>"
    if message.thumbnail_url:
        container = ui.Container(
            ui.Section(
                ui.TextDisplay("# New Request"),
                ui.TextDisplay(description),
                accessory=ui.Thumbnail(message.thumbnail_url),
            ),
            accent_colour=ACCENT_COLOR,
        )
    else:
        container = ui.Container(
            ui.TextDisplay("# New Request"),
            ui.Separator(),
            ui.TextDisplay(description),
            accent_colour=ACCENT_COLOR,
        )
    return _layout(container)


def continuation_from(interaction: discord.Interaction) -> ContinuationEvent | None:
    """Build a continuation event from a component interaction we rendered."""
    data = interaction.data or {}
    custom_id = data.get("custom_id")
    if not isinstance(custom_id, str) or custom_id.split(":", 1)[0] not in _SCOPES:
        return None
    values = data.get("values") or []
    return ContinuationEvent(
        custom_id=custom_id,
        values=tuple(str(value) for value in values),
        interaction_id=interaction.id,
        token=interaction.token,
        origin=interaction,
    )


class DiscordRenderer:
    """Renders one session into the ephemeral reply of its slash command."""

    def __init__(self, interaction: discord.Interaction) -> None:
        self._interaction = interaction

    async def defer(self) -> None:
        await self._interaction.response.defer(ephemeral=True, thinking=True)

    async def show_results(
        self, session_id: str, options: Sequence[DropdownOption], event: ContinuationEvent | None = None
    ) -> None:
        await self._update(results_view(session_id, options), event)

    async def show_details(
        self, session_id: str, info: MediaDisplayInfo, state: DetailsState, event: ContinuationEvent
    ) -> None:
        await self._update(details_view(session_id, info, state), event)

    async def show_message(self, text: str, event: ContinuationEvent | None = None) -> None:
        await self._update(message_view(text), event)

    async def acknowledge(self, event: ContinuationEvent) -> None:
        """Defer the component's update; later renders edit the original response."""
        origin = event.origin
        if origin is None or origin.response.is_done():
            return
        await origin.response.defer()

    async def show_completion(self, message: SuccessMessage) -> None:
        await self._update(completion_view(message))

    async def broadcast_success(self, message: SuccessMessage) -> None:
        channel = self._interaction.channel
        if not isinstance(channel, discord.abc.Messageable):
            logger.warning("discord.broadcast unresolved channel interaction_id={}", self._interaction.id)
            return
        await channel.send(view=success_view(self._interaction.user.id, message))

    async def _update(self, view: ui.LayoutView, event: ContinuationEvent | None = None) -> None:
        target = self._interaction
        if event is not None and event.origin is not None:
            target = event.origin
        if not target.response.is_done():
            if target.type is discord.InteractionType.component:
                await target.response.edit_message(view=view)
            else:
                await target.response.send_message(view=view, ephemeral=True)
            return
        await self._interaction.edit_original_response(view=view)


def build_request_group(dispatcher: Dispatcher) -> app_commands.Group:
    """``/request <kind> query:<text>``, one subcommand per configured kind."""
    group = app_commands.Group(name=TOP_LEVEL_COMMAND_NAME, description="Request media")
    for kind in dispatcher.kinds:
        group.add_command(_kind_command(dispatcher, kind))
    return group


def _kind_command(dispatcher: Dispatcher, kind: MediaKind) -> app_commands.Command:
    @app_commands.describe(query="search query")
    async def _request(interaction: discord.Interaction, query: str) -> None:
        logger.info("discord.command kind={} query={} user_id={}", kind.value, query, interaction.user.id)
        dispatcher.start_session(kind, query, DiscordRenderer(interaction))

    return app_commands.Command(name=kind.value, description=f"Request a {kind.value}", callback=_request)


class DiscordChannel:
    """Discord adapter based on discord.py."""

    name = "discord"

    def __init__(self, token: str, dispatcher: Dispatcher) -> None:
        self._token = token
        self._dispatcher = dispatcher
        self._client: discord.Client | None = None

    async def start(self) -> None:
        intents = discord.Intents.none()
        intents.guilds = True
        client = discord.Client(intents=intents)
        tree = app_commands.CommandTree(client)
        tree.add_command(build_request_group(self._dispatcher))
        self._client = client

        @client.event
        async def on_ready() -> None:
            logger.info("discord.ready user={} guilds={}", str(client.user), len(client.guilds))
            for guild in client.guilds:
                tree.copy_global_to(guild=guild)
                try:
                    await tree.sync(guild=guild)
                except discord.HTTPException as exc:
                    logger.error("discord.commands.sync_failed guild_id={} error={}", guild.id, exc)
                    continue
                logger.info(
                    "discord.commands.registered guild={} guild_id={} kinds={}",
                    guild.name,
                    guild.id,
                    [kind.value for kind in self._dispatcher.kinds],
                )

        @client.event
        async def on_interaction(interaction: discord.Interaction) -> None:
            if interaction.type is not discord.InteractionType.component:
                return
            await self._on_component(interaction)

        logger.info("discord.start kinds={}", [kind.value for kind in self._dispatcher.kinds])
        try:
            async with client:
                await client.start(self._token)
        finally:
            self._client = None
            logger.info("discord.stopped")

    async def _on_component(self, interaction: discord.Interaction) -> None:
        event = continuation_from(interaction)
        if event is None:
            logger.debug("discord.component.ignored data={}", interaction.data)
            return
        logger.debug("discord.component custom_id={} values={}", event.custom_id, event.values)
        await self._dispatcher.continue_session(event, DiscordRenderer(interaction))
