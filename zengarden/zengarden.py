import asyncio
import traceback
from typing import Optional

import discord
from redbot.core import Config, commands, data_manager

from .decorators import is_backup_configured, is_cog_ready, is_not_locked
from .helpers import (
    BackupError,
    BackupHelper,
    DataHelper,
    GameStateHelper,
    GardenHelper,
    LockHelper,
    LoggingHelper,
    ShopHelper,
    SyncHelper,
    TimeHelper,
)
from .models import ItemSubtype, TransactionResponse
from .repositories import create_db_engine, create_session_factory


class ZenGarden(commands.Cog):
    """Grow, harvest and trade in your own Zen Garden."""

    CURRENCY_EMOJI = "🪙"

    def __init__(self, bot: commands.Bot):
        self._initialized = False

        self.bot = bot
        self.config = Config.get_conf(self, identifier=291154617134223361)
        self.config.register_global(
            game_state={},
            database_url=None,
            log_channel_id=None,
            backup_base_url=None,
            cloud_save=False,
            instant_grow=False,
        )

        self.cog_data_path = data_manager.bundled_data_path(self)
        self.lock_helper = LockHelper()
        self.logger = LoggingHelper(bot)
        self.data_loader = DataHelper(self.cog_data_path, self.logger)
        self.data_loader.load_all_data()

        self.game_state_helper = GameStateHelper(self.config, self.data_loader.catalog,
                                                 self.data_loader.store_definitions, self.logger)

        self.engine = None
        self.sync_helper: Optional[SyncHelper] = None
        self.garden_helper: Optional[GardenHelper] = None
        self.shop_helper: Optional[ShopHelper] = None
        self.backup_helper: Optional[BackupHelper] = None

        self.restock_task = self.bot.loop.create_task(self.startup_and_restock_loop())

    def cog_unload(self):
        """Cog cleanup method."""

        if self.restock_task:
            self.restock_task.cancel()

        self.lock_helper.clear_all_locks()
        if self.engine is not None:
            self.engine.dispose()
        self.logger.init_log("Zen Garden cog systems are now offline.", "INFO")

    async def _load_and_initialize_helpers(self):
        self.logger.log_channel_id = await self.config.log_channel_id()
        await self.game_state_helper.load_game_state()

        database_url = await self.config.database_url()
        if not database_url:
            database_url = f"sqlite:///{data_manager.cog_data_path(self) / 'zengarden.db'}"
        self.engine = create_db_engine(database_url)

        self.sync_helper = SyncHelper(create_session_factory(self.engine), self.game_state_helper, self.logger,
                                      enabled=await self.config.cloud_save())
        self.garden_helper = GardenHelper(self.game_state_helper, self.sync_helper, self.lock_helper, self.logger,
                                          instant_grow=await self.config.instant_grow())
        self.shop_helper = ShopHelper(self.game_state_helper, self.sync_helper, self.lock_helper, self.logger)

        backup_base_url = await self.config.backup_base_url()
        self.backup_helper = BackupHelper(backup_base_url, self.logger) if backup_base_url else None

    async def startup_and_restock_loop(self):
        """The main background task: restocks due stores and saves the local game state."""

        await self.bot.wait_until_ready()
        await self.logger.flush_init_log_queue()
        await self.logger.log_to_discord("Restock Loop: System Online.", "INFO")

        await self._load_and_initialize_helpers()
        self._initialized = True

        await self.logger.log_to_discord("Restock Loop: Startup complete. Entering main cycle.", "INFO")
        loop_counter = 0
        while not self.bot.is_closed():
            try:
                await self.shop_helper.restock_due_stores()
                await self.game_state_helper.commit_to_disk()
            except Exception as e:
                self.logger.log(
                    f"Restock Loop: CRITICAL Anomaly in cycle {loop_counter}: {e}\n{traceback.format_exc()}",
                    "CRITICAL")

            loop_counter += 1
            interval = self.game_state_helper.get_global_state("restock_check_interval_seconds")
            await asyncio.sleep(max(1, interval))

    # --- Presentation ---

    @staticmethod
    async def _send_failure(ctx: commands.Context, title: str, response: TransactionResponse):
        embed = discord.Embed(title=f"❌ {title}", description="\n".join(response.messages),
                              color=discord.Color.red())
        await ctx.send(embed=embed)

    @staticmethod
    def _format_items(items, with_price=None) -> str:
        lines = []
        for item in items:
            template = item.item_data
            line = f"{template.icon} **{template.name}** x{item.quantity}"
            if with_price is not None:
                line += f" ({with_price(item):,} {ZenGarden.CURRENCY_EMOJI} each)"
            lines.append(line)
        return "\n".join(lines) or "Nothing here."

    # --- Profile ---

    @commands.command(name="gardenprofile")
    @is_cog_ready()
    async def gardenprofile_command(self, ctx: commands.Context, user: Optional[discord.Member] = None):
        """Shows a gardener's level, gold and garden summary."""

        target_user = user or ctx.author
        profile = self.garden_helper.get_user_profile_view(target_user.id)
        inventory = self.game_state_helper.get_inventory(target_user.id)
        summary = self.garden_helper.get_garden_summary(target_user.id)

        embed = discord.Embed(color=discord.Color.blue())
        embed.set_author(name=f"{profile.icon} {profile.username or target_user.display_name}: Zen Garden",
                         icon_url=target_user.display_avatar.url)
        embed.add_field(
            name="📈 Gardener",
            value=f"**Level:** {profile.level} ({profile.xp:,} XP)\n"
                  f"**Gold:** {inventory.get_gold():,} {self.CURRENCY_EMOJI}",
            inline=False
        )

        subtypes = summary["subtypes"]
        embed.add_field(
            name="🌳 Garden",
            value=f"**Size:** {summary['rows']}x{summary['cols']}\n"
                  f"**Plants:** {subtypes.get(ItemSubtype.PLANT, 0)} ({summary['ready']} ready)\n"
                  f"**Decorations:** {subtypes.get(ItemSubtype.DECORATION, 0)}\n"
                  f"**Empty plots:** {subtypes.get(ItemSubtype.GROUND, 0)}",
            inline=False
        )
        await ctx.send(embed=embed)

    @commands.command(name="garden")
    @is_cog_ready()
    async def garden_command(self, ctx: commands.Context, user: Optional[discord.Member] = None):
        """Shows a garden as a grid. Rows and columns are numbered from 1."""

        target_user = user or ctx.author
        now = TimeHelper.get_current_timestamp()
        garden = self.garden_helper.get_garden(target_user.id)

        embed = discord.Embed(title=f"🌳 {target_user.display_name}'s Garden",
                              description=self.garden_helper.render_garden(target_user.id, now),
                              color=discord.Color.green())

        growing = []
        for row_index, row in enumerate(garden.get_plots()):
            for col_index, plot in enumerate(row):
                if plot.get_item_subtype() != ItemSubtype.PLANT:
                    continue
                remaining = 0 if self.garden_helper.instant_grow else plot.get_remaining_grow_time(now)
                status = "ready" if remaining <= 0 else TimeHelper.format_duration(remaining)
                growing.append(f"({row_index + 1}, {col_index + 1}) {plot.item.item_data.name}: {status}")
        if growing:
            embed.add_field(name="🌱 Growing", value="\n".join(growing[:20]), inline=False)
        await ctx.send(embed=embed)

    @commands.command(name="inventory")
    @is_cog_ready()
    async def inventory_command(self, ctx: commands.Context, user: Optional[discord.Member] = None):
        """Lists a gardener's gold and items, grouped by kind."""

        target_user = user or ctx.author
        inventory = self.game_state_helper.get_inventory(target_user.id)
        items = inventory.get_items()

        embed = discord.Embed(title=f"🎒 {target_user.display_name}'s Inventory",
                              description=f"**Gold:** {inventory.get_gold():,} {self.CURRENCY_EMOJI}",
                              color=discord.Color.blue())
        for subtype in items.get_all_subtypes():
            embed.add_field(name=subtype, value=self._format_items(items.get_items_by_subtype(subtype)),
                            inline=False)
        if not items.size():
            embed.add_field(name="Items", value="No items yet.", inline=False)
        await ctx.send(embed=embed)

    @commands.command(name="seticon")
    @is_cog_ready()
    @is_not_locked()
    async def seticon_command(self, ctx: commands.Context, icon: str):
        """Sets the icon shown next to your name."""

        response = self.garden_helper.set_icon(ctx.author.id, icon)
        if not response.is_successful():
            await self._send_failure(ctx, "Invalid Icon", response)
            return

        if self.backup_helper is not None:
            try:
                await asyncio.to_thread(self.backup_helper.patch_icon, str(ctx.author.id), response.payload)
            except BackupError as e:
                await self.logger.log_to_discord(f"Icon backup for {ctx.author.id} failed: {e}", "WARNING")
        await ctx.send(f"✅ Your icon is now {response.payload}")

    @commands.command(name="setusername")
    @is_cog_ready()
    @is_not_locked()
    async def setusername_command(self, ctx: commands.Context, *, username: str):
        """Sets the name shown on your garden."""

        response = self.garden_helper.set_username(ctx.author.id, username)
        if not response.is_successful():
            await self._send_failure(ctx, "Invalid Username", response)
            return

        if self.backup_helper is not None:
            try:
                await asyncio.to_thread(self.backup_helper.patch_username, str(ctx.author.id), response.payload)
            except BackupError as e:
                await self.logger.log_to_discord(f"Username backup for {ctx.author.id} failed: {e}", "WARNING")
        await ctx.send(f"✅ Your gardener name is now **{response.payload}**")

    # --- Garden actions ---

    @commands.command(name="plant")
    @is_cog_ready()
    @is_not_locked()
    async def plant_command(self, ctx: commands.Context, row: int, col: int, *, seed: str):
        """Plants a seed from your inventory in an empty plot."""

        response = await self.garden_helper.plant(ctx.author.id, seed.lower(), row - 1, col - 1)
        if not response.is_successful():
            await self._send_failure(ctx, "Planting Failed", response)
            return

        plant = response.payload["placed_item"].item_data
        await ctx.send(f"🌱 Planted **{plant.name}** at ({row}, {col}). "
                       f"Ready in {TimeHelper.format_duration(plant.grow_time)}.")

    @commands.command(name="plantall")
    @is_cog_ready()
    @is_not_locked()
    async def plantall_command(self, ctx: commands.Context, *, seed: str):
        """Plants a seed in every empty plot until you run out."""

        response = await self.garden_helper.plant_all(ctx.author.id, seed.lower())
        if not response.is_successful():
            await self._send_failure(ctx, "Planting Failed", response)
            return
        await ctx.send(f"🌱 Planted {len(response.payload)} plot(s).")

    @commands.command(name="harvest")
    @is_cog_ready()
    @is_not_locked()
    async def harvest_command(self, ctx: commands.Context, row: int, col: int):
        """Harvests a fully grown plant."""

        response = await self.garden_helper.harvest(ctx.author.id, row - 1, col - 1)
        if not response.is_successful():
            await self._send_failure(ctx, "Harvest Failed", response)
            return

        harvested = response.payload["harvested_item_template"]
        await ctx.send(f"🧺 Harvested {harvested.icon} **{harvested.name}** (+{response.payload['xp_gained']} XP).")

    @commands.command(name="harvestall")
    @is_cog_ready()
    @is_not_locked()
    async def harvestall_command(self, ctx: commands.Context):
        """Harvests every plant that is ready."""

        response = await self.garden_helper.harvest_all(ctx.author.id)
        if not response.is_successful():
            await self._send_failure(ctx, "Harvest Failed", response)
            return

        lines = [f"**{name}** x{count}" for name, count in response.payload["harvested"].items()]
        embed = discord.Embed(title="🧺 Harvest Complete", description="\n".join(lines),
                              color=discord.Color.green())
        embed.set_footer(text=f"+{response.payload['xp_gained']} XP")
        await ctx.send(embed=embed)

    @commands.command(name="place")
    @is_cog_ready()
    @is_not_locked()
    async def place_command(self, ctx: commands.Context, row: int, col: int, *, blueprint: str):
        """Builds a decoration from a blueprint in an empty plot."""

        response = await self.garden_helper.place_decoration(ctx.author.id, blueprint.lower(), row - 1, col - 1)
        if not response.is_successful():
            await self._send_failure(ctx, "Placement Failed", response)
            return

        decoration = response.payload["placed_item"].item_data
        await ctx.send(f"🏗️ Placed {decoration.icon} **{decoration.name}** at ({row}, {col}).")

    @commands.command(name="repackage")
    @is_cog_ready()
    @is_not_locked()
    async def repackage_command(self, ctx: commands.Context, row: int, col: int):
        """Packs a decoration back into its blueprint."""

        response = await self.garden_helper.repackage(ctx.author.id, row - 1, col - 1)
        if not response.is_successful():
            await self._send_failure(ctx, "Repackage Failed", response)
            return

        blueprint = response.payload["blueprint_item_template"]
        await ctx.send(f"📦 Repackaged into {blueprint.icon} **{blueprint.name}**.")

    @commands.command(name="expand")
    @is_cog_ready()
    @is_not_locked()
    async def expand_command(self, ctx: commands.Context, dimension: str):
        """Adds a `row` or `column` to your garden. Larger gardens need higher levels."""

        response = await self.garden_helper.expand(ctx.author.id, dimension.lower())
        if not response.is_successful():
            await self._send_failure(ctx, "Expansion Failed", response)
            return

        rows, cols = response.payload
        await ctx.send(f"📐 Your garden is now {rows}x{cols}.")

    @commands.command(name="shrink")
    @is_cog_ready()
    @is_not_locked()
    async def shrink_command(self, ctx: commands.Context, dimension: str):
        """Removes the last `row` or `column`. Decorations in it return as blueprints; plants are lost."""

        response = await self.garden_helper.shrink(ctx.author.id, dimension.lower())
        if not response.is_successful():
            await self._send_failure(ctx, "Shrink Failed", response)
            return

        rows, cols = response.payload["size"]
        description = f"Your garden is now {rows}x{cols}."
        refunded = response.payload["refunded"]
        if refunded:
            description += "\nReturned: " + ", ".join(f"**{name}** x{count}" for name, count in refunded.items())
        await ctx.send(embed=discord.Embed(title="📐 Garden Shrunk", description=description,
                                           color=discord.Color.orange()))

    @commands.command(name="swap")
    @is_cog_ready()
    @is_not_locked()
    async def swap_command(self, ctx: commands.Context, row1: int, col1: int, row2: int, col2: int):
        """Swaps the contents of two plots."""

        response = await self.garden_helper.swap(ctx.author.id, (row1 - 1, col1 - 1), (row2 - 1, col2 - 1))
        if not response.is_successful():
            await self._send_failure(ctx, "Swap Failed", response)
            return
        await ctx.send(f"🔀 Swapped ({row1}, {col1}) and ({row2}, {col2}).")

    # --- Stores ---

    @commands.command(name="shop")
    @is_cog_ready()
    async def shop_command(self, ctx: commands.Context, store_id: int = 0):
        """Shows a store's stock and prices."""

        store_response = self.shop_helper.get_store(ctx.author.id, store_id)
        if not store_response.is_successful():
            await self._send_failure(ctx, "Unknown Store", store_response)
            return

        store = store_response.payload
        embed = discord.Embed(title=f"🛒 {store.get_store_name()}",
                              description=self._format_items(store.get_all_items(), store.get_buy_price),
                              color=discord.Color.gold())
        now = TimeHelper.get_current_timestamp()
        if store.get_restock_time() > now:
            embed.set_footer(text=f"Next restock in {TimeHelper.format_duration(store.get_restock_time() - now)} "
                                  f"({TimeHelper.format_est_datetime(store.get_restock_time())})")
        else:
            embed.set_footer(text="Restock available now")
        await ctx.send(embed=embed)

    @commands.command(name="buy")
    @is_cog_ready()
    @is_not_locked()
    async def buy_command(self, ctx: commands.Context, quantity: int, *, item: str):
        """Buys items from the General Store. Use `buyfrom` for other stores."""
        await self._buy(ctx, 0, quantity, item)

    @commands.command(name="buyfrom")
    @is_cog_ready()
    @is_not_locked()
    async def buyfrom_command(self, ctx: commands.Context, store_id: int, quantity: int, *, item: str):
        """Buys items from a specific store."""
        await self._buy(ctx, store_id, quantity, item)

    async def _buy(self, ctx: commands.Context, store_id: int, quantity: int, item: str):
        response = await self.shop_helper.buy(ctx.author.id, store_id, item.lower(), quantity)
        if not response.is_successful():
            await self._send_failure(ctx, "Purchase Failed", response)
            return

        purchased = response.payload["purchased_item"].item_data
        embed = discord.Embed(
            title="🛒 Purchase Complete",
            description=f"Bought {purchased.icon} **{purchased.name}** x{quantity} for "
                        f"**{response.payload['total_cost']:,}** {self.CURRENCY_EMOJI}.\n"
                        f"New balance: **{response.payload['final_gold']:,}** {self.CURRENCY_EMOJI}.",
            color=discord.Color.green()
        )
        await ctx.send(embed=embed)

    @commands.command(name="sell")
    @is_cog_ready()
    @is_not_locked()
    async def sell_command(self, ctx: commands.Context, quantity: int, *, item: str):
        """Sells items to the General Store."""

        response = await self.shop_helper.sell(ctx.author.id, 0, item.lower(), quantity)
        if not response.is_successful():
            await self._send_failure(ctx, "Sale Failed", response)
            return

        sold = response.payload["store_item"].item_data
        embed = discord.Embed(
            title="💰 Sale Complete",
            description=f"Sold {sold.icon} **{sold.name}** x{quantity} for "
                        f"**{response.payload['total_earnings']:,}** {self.CURRENCY_EMOJI}.\n"
                        f"New balance: **{response.payload['final_gold']:,}** {self.CURRENCY_EMOJI}.",
            color=discord.Color.green()
        )
        await ctx.send(embed=embed)

    @commands.command(name="restock")
    @is_cog_ready()
    @is_not_locked()
    async def restock_command(self, ctx: commands.Context, store_id: int = 0):
        """Restocks a store once its timer has run out."""

        response = await self.shop_helper.restock(ctx.author.id, store_id)
        if not response.is_successful():
            await self._send_failure(ctx, "Restock Failed", response)
            return
        await ctx.send(f"📦 Restocked {sum(response.payload.values())} item(s).")

    # --- Cloud save and backup ---

    @commands.command(name="cloudsave")
    @is_cog_ready()
    @commands.is_owner()
    async def cloudsave_command(self, ctx: commands.Context, enabled: Optional[bool] = None):
        """Shows or toggles the database copy of every garden."""

        if enabled is None:
            state = "on" if self.sync_helper.enabled else "off"
            await ctx.send(f"☁️ Cloud save is currently **{state}**.")
            return

        if enabled and not self.sync_helper.enabled:
            # The database may hold an older copy; the local game is the one players have been using.
            pushed = 0
            user_ids = list(self.game_state_helper.get_all_user_data())
            for user_id in user_ids:
                async with self.lock_helper.owner_lock(user_id):
                    pushed += await self.sync_helper.push_accounts([user_id])
            await self.logger.log_to_discord(f"Cloud save enabled: pushed {pushed}/{len(user_ids)} accounts.", "INFO")

        self.sync_helper.enabled = enabled
        await self.config.cloud_save.set(enabled)
        await ctx.send(f"☁️ Cloud save is now **{'on' if enabled else 'off'}**.")

    @commands.command(name="backup")
    @is_cog_ready()
    @is_backup_configured()
    @is_not_locked()
    async def backup_command(self, ctx: commands.Context):
        """Uploads your whole game to the backup service."""

        user_id = str(ctx.author.id)
        async with self.lock_helper.owner_lock(user_id):
            snapshot = self.game_state_helper.export_account(user_id)
        try:
            await asyncio.to_thread(self.backup_helper.push_account, user_id, snapshot)
        except BackupError as e:
            await self._send_failure(ctx, "Backup Failed", TransactionResponse.fail(str(e)))
            return
        await ctx.send("☁️ Your garden has been backed up.")

    @commands.command(name="restore")
    @is_cog_ready()
    @is_backup_configured()
    @is_not_locked()
    async def restore_command(self, ctx: commands.Context):
        """Replaces your game with your last backup."""

        user_id = str(ctx.author.id)
        self.lock_helper.add_lock(user_id, "restore", "Your garden is being restored from backup.")
        try:
            try:
                snapshot = await asyncio.to_thread(self.backup_helper.fetch_account, user_id)
            except BackupError as e:
                await self._send_failure(ctx, "Restore Failed", TransactionResponse.fail(str(e)))
                return

            async with self.lock_helper.owner_lock(user_id):
                response = await self.sync_helper.restore_account(user_id, snapshot)
        finally:
            self.lock_helper.remove_lock_for_user(user_id)

        if not response.is_successful():
            await self._send_failure(ctx, "Restore Failed", response)
            return
        await ctx.send("☁️ Your garden has been restored from backup.")

    # --- Admin ---

    @commands.group(name="gardenadmin")
    @is_cog_ready()
    @commands.is_owner()
    async def cmd_admin_group(self, ctx: commands.Context):
        """Base command for owner-only Zen Garden utilities."""
        pass

    @cmd_admin_group.command(name="setgold")
    async def admin_setgold_command(self, ctx: commands.Context, amount: int, target_user: discord.Member):
        """Sets a user's gold to a specific amount."""

        original = self.game_state_helper.get_inventory(target_user.id).get_gold()
        response = await self.shop_helper.set_gold(target_user.id, amount)
        if not response.is_successful():
            await self._send_failure(ctx, "Invalid Input", response)
            return

        embed = discord.Embed(title="⚙️ Admin: Gold Set",
                              description=f"Set the gold of {target_user.mention}.",
                              color=discord.Color.orange())
        embed.add_field(name="Original Balance", value=f"{original:,} {self.CURRENCY_EMOJI}", inline=True)
        embed.add_field(name="New Balance", value=f"{response.payload:,} {self.CURRENCY_EMOJI}", inline=True)
        await ctx.send(embed=embed)

    @cmd_admin_group.command(name="instantgrow")
    async def admin_instantgrow_command(self, ctx: commands.Context, enabled: bool):
        """Makes every plant harvestable immediately (testing aid)."""

        self.garden_helper.instant_grow = enabled
        await self.config.instant_grow.set(enabled)
        await ctx.send(f"⚙️ Instant grow is now **{'on' if enabled else 'off'}**.")

    @cmd_admin_group.command(name="backupurl")
    async def admin_backupurl_command(self, ctx: commands.Context, url: Optional[str] = None):
        """Sets the backup service URL. Run without a URL to disable backups."""

        await self.config.backup_base_url.set(url)
        self.backup_helper = BackupHelper(url, self.logger) if url else None
        await ctx.send(f"⚙️ Backup service {'set to ' + url if url else 'disabled'}.")

    @cmd_admin_group.command(name="logchannel")
    async def admin_logchannel_command(self, ctx: commands.Context, channel: Optional[discord.TextChannel] = None):
        """Sets the channel that receives system logs."""

        channel_id = channel.id if channel else None
        await self.config.log_channel_id.set(channel_id)
        self.logger.log_channel_id = channel_id
        await ctx.send(f"⚙️ Log channel {'set to ' + channel.mention if channel else 'cleared'}.")

    @cmd_admin_group.command(name="restockall")
    async def admin_restockall_command(self, ctx: commands.Context):
        """Runs the restock check for every loaded store right now."""

        restocked = await self.shop_helper.restock_due_stores()
        await ctx.send(f"⚙️ Restocked {len(restocked)} store(s).")
