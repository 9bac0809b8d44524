from collections import Counter
from typing import Any, Dict, List, Optional, Tuple

from ..models import (
    Garden,
    ItemSubtype,
    Plot,
    TransactionResponse,
    UserProfileView,
)
from .game_state_helper import GameStateHelper
from .lock_helper import LockHelper
from .logging_helper import LoggingHelper
from .sync_helper import CLOUD_UNAVAILABLE_MESSAGE, RESYNC_MESSAGE, SyncHelper
from .time_helper import TimeHelper

ROW = "row"
COLUMN = "column"


class GardenHelper:
    """
    Garden actions for one player at a time: plant, harvest, place, repackage, resize and swap.

    Each action holds the owner's lock, mutates the local garden and inventory, then mirrors the
    change durably through the SyncHelper. Profiles are exposed as immutable views.
    """

    def __init__(self, game_state_helper: GameStateHelper, sync_helper: SyncHelper, lock_helper: LockHelper,
                 logger: Optional[LoggingHelper] = None, instant_grow: bool = False):
        self.game_state_helper = game_state_helper
        self.sync_helper = sync_helper
        self.lock_helper = lock_helper
        self.logger = logger or LoggingHelper()
        self.instant_grow = instant_grow

    @property
    def catalog(self):
        return self.game_state_helper.catalog

    def _ground_id(self) -> str:
        return self.catalog.get_ground_template().id

    def _xp_per_level(self) -> int:
        return self.game_state_helper.get_global_state("xp_per_level")

    async def _mirror(self, user_id: str, response: TransactionResponse, operation, *args) -> TransactionResponse:
        """Applies a successful local change durably; a durable failure turns into an error for the player."""

        self.game_state_helper.save_user(user_id)
        if not await self.sync_helper.run(user_id, operation, *args):
            return TransactionResponse.fail(RESYNC_MESSAGE)
        return response

    def _award_xp(self, user_id: str, xp: int):
        # Profiles have no durable copy; XP is awarded once the harvest is stored.
        self.game_state_helper.get_profile(user_id).add_xp(xp)
        self.game_state_helper.save_user(user_id)

    # --- Views ---

    def get_user_profile_view(self, user_id: str) -> UserProfileView:
        profile = self.game_state_helper.get_profile(user_id)
        return UserProfileView(
            user_id=profile.user_id,
            username=profile.username,
            icon=profile.icon,
            xp=profile.xp,
            level=profile.get_level(self._xp_per_level()),
        )

    def get_garden(self, user_id: str) -> Garden:
        return self.game_state_helper.get_garden(user_id)

    def get_garden_summary(self, user_id: str, now: Optional[float] = None) -> Dict[str, Any]:
        """Counts of plot contents plus how many plants are ready, for the garden embed."""

        now = TimeHelper.get_current_timestamp() if now is None else now
        garden = self.get_garden(user_id)
        plots = [plot for row in garden.get_plots() for plot in row]
        return {
            "rows": garden.get_rows(),
            "cols": garden.get_cols(),
            "subtypes": Counter(plot.get_item_subtype() for plot in plots),
            "ready": sum(1 for plot in plots if plot.is_ready(now, self.instant_grow)),
        }

    def render_garden(self, user_id: str, now: Optional[float] = None) -> str:
        """The garden as a grid of icons, one line per row. Growing plants show as sprouts."""

        now = TimeHelper.get_current_timestamp() if now is None else now
        lines = []
        for row in self.get_garden(user_id).get_plots():
            icons = []
            for plot in row:
                if plot.get_item_subtype() == ItemSubtype.PLANT and not plot.is_ready(now, self.instant_grow):
                    icons.append("🌱")
                else:
                    icons.append(plot.item.item_data.icon or "?")
            lines.append("".join(icons))
        return "\n".join(lines)

    # --- Actions ---

    async def _place(self, user_id: str, item_ref: str, row: int, col: int, is_seed: bool,
                     now: Optional[float]) -> TransactionResponse:
        user_id = str(user_id)
        now = TimeHelper.get_current_timestamp() if now is None else now

        async with self.lock_helper.owner_lock(user_id):
            if not await self.sync_helper.ensure_account(user_id):
                return TransactionResponse.fail(CLOUD_UNAVAILABLE_MESSAGE)
            garden = self.game_state_helper.get_garden(user_id)
            inventory = self.game_state_helper.get_inventory(user_id)

            if is_seed:
                response = garden.plant_seed(inventory, item_ref, (row, col), now)
            else:
                response = garden.place_decoration(inventory, item_ref, (row, col), now)
            if not response.is_successful():
                return response

            consumed = response.payload["original_item"].item_data.id
            placed = response.payload["placed_item"]
            placements = [(row, col, consumed, placed.item_data.id, placed.status)]
            return await self._mirror(user_id, response, self.sync_helper.place_from_inventory,
                                      placements, self._ground_id(), now)

    async def plant(self, user_id: str, seed_ref: str, row: int, col: int,
                    now: Optional[float] = None) -> TransactionResponse:
        return await self._place(user_id, seed_ref, row, col, True, now)

    async def place_decoration(self, user_id: str, blueprint_ref: str, row: int, col: int,
                               now: Optional[float] = None) -> TransactionResponse:
        return await self._place(user_id, blueprint_ref, row, col, False, now)

    async def plant_all(self, user_id: str, seed_ref: str, now: Optional[float] = None) -> TransactionResponse:
        user_id = str(user_id)
        now = TimeHelper.get_current_timestamp() if now is None else now

        async with self.lock_helper.owner_lock(user_id):
            if not await self.sync_helper.ensure_account(user_id):
                return TransactionResponse.fail(CLOUD_UNAVAILABLE_MESSAGE)
            garden = self.game_state_helper.get_garden(user_id)
            inventory = self.game_state_helper.get_inventory(user_id)

            seed_response = inventory.get_item(seed_ref)
            if not seed_response.is_successful():
                return seed_response
            seed_id = seed_response.payload.item_data.id

            response = garden.plant_all(inventory, seed_ref, now)
            if not response.is_successful():
                return response

            placements = []
            for plot in response.payload:
                row, col = garden.get_plot_position(plot)
                placements.append((row, col, seed_id, plot.item.item_data.id, plot.item.status))
            return await self._mirror(user_id, response, self.sync_helper.place_from_inventory,
                                      placements, self._ground_id(), now)

    async def harvest(self, user_id: str, row: int, col: int, now: Optional[float] = None) -> TransactionResponse:
        """Payload as Garden.harvest_plot, plus "xp_gained"."""

        user_id = str(user_id)
        now = TimeHelper.get_current_timestamp() if now is None else now

        async with self.lock_helper.owner_lock(user_id):
            if not await self.sync_helper.ensure_account(user_id):
                return TransactionResponse.fail(CLOUD_UNAVAILABLE_MESSAGE)
            garden = self.game_state_helper.get_garden(user_id)
            inventory = self.game_state_helper.get_inventory(user_id)

            plot: Optional[Plot] = garden.get_plot_by_row_and_column(row, col)
            original_time = plot.plant_time if plot else None

            response = garden.harvest_plot((row, col), now, self.instant_grow)
            if not response.is_successful():
                return response

            original = response.payload["original_item"]
            harvested = response.payload["harvested_item_template"]
            add_response = inventory.add_item(harvested, 1)
            if not add_response.is_successful():
                plot.item = original
                plot.plant_time = original_time
                return add_response

            response.payload["xp_gained"] = original.item_data.base_exp
            removals = [(row, col, original.item_data.id, harvested.id)]
            response = await self._mirror(user_id, response, self.sync_helper.return_to_inventory,
                                          removals, self._ground_id(), now)
            if response.is_successful():
                self._award_xp(user_id, original.item_data.base_exp)
            return response

    async def harvest_all(self, user_id: str, now: Optional[float] = None) -> TransactionResponse:
        """Payload: {"harvested": Counter of harvested template names, "xp_gained": int}."""

        user_id = str(user_id)
        now = TimeHelper.get_current_timestamp() if now is None else now

        async with self.lock_helper.owner_lock(user_id):
            if not await self.sync_helper.ensure_account(user_id):
                return TransactionResponse.fail(CLOUD_UNAVAILABLE_MESSAGE)
            garden = self.game_state_helper.get_garden(user_id)
            inventory = self.game_state_helper.get_inventory(user_id)

            response = garden.harvest_all(inventory, now, self.instant_grow)
            if not response.is_successful():
                return response

            xp_gained = sum(entry["original_item"].item_data.base_exp for entry in response.payload)

            removals = [
                (row, col, entry["original_item"].item_data.id, entry["harvested_item_template"].id)
                for entry in response.payload
                for row, col in [entry["position"]]
            ]
            summary = TransactionResponse.ok({
                "harvested": Counter(entry["harvested_item_template"].name for entry in response.payload),
                "xp_gained": xp_gained,
            })
            summary = await self._mirror(user_id, summary, self.sync_helper.return_to_inventory,
                                         removals, self._ground_id(), now)
            if summary.is_successful():
                self._award_xp(user_id, xp_gained)
            return summary

    async def repackage(self, user_id: str, row: int, col: int, now: Optional[float] = None) -> TransactionResponse:
        user_id = str(user_id)
        now = TimeHelper.get_current_timestamp() if now is None else now

        async with self.lock_helper.owner_lock(user_id):
            if not await self.sync_helper.ensure_account(user_id):
                return TransactionResponse.fail(CLOUD_UNAVAILABLE_MESSAGE)
            garden = self.game_state_helper.get_garden(user_id)
            inventory = self.game_state_helper.get_inventory(user_id)

            plot: Optional[Plot] = garden.get_plot_by_row_and_column(row, col)
            original_time = plot.plant_time if plot else None

            response = garden.repackage_plot((row, col), now)
            if not response.is_successful():
                return response

            original = response.payload["original_item"]
            blueprint = response.payload["blueprint_item_template"]
            add_response = inventory.add_item(blueprint, 1)
            if not add_response.is_successful():
                plot.item = original
                plot.plant_time = original_time
                return add_response

            removals = [(row, col, original.item_data.id, blueprint.id)]
            return await self._mirror(user_id, response, self.sync_helper.return_to_inventory,
                                      removals, self._ground_id(), now)

    async def expand(self, user_id: str, dimension: str, now: Optional[float] = None) -> TransactionResponse:
        """Adds a row or column if the player's level allows it. Payload: the new (rows, cols)."""

        user_id = str(user_id)
        now = TimeHelper.get_current_timestamp() if now is None else now

        async with self.lock_helper.owner_lock(user_id):
            if not await self.sync_helper.ensure_account(user_id):
                return TransactionResponse.fail(CLOUD_UNAVAILABLE_MESSAGE)
            garden = self.game_state_helper.get_garden(user_id)
            level = self.game_state_helper.get_profile(user_id).get_level(self._xp_per_level())

            if dimension == ROW:
                response = garden.add_row(level, now)
            elif dimension == COLUMN:
                response = garden.add_column(level, now)
            else:
                return TransactionResponse.fail(f"Unknown dimension '{dimension}'. Use 'row' or 'column'.")
            if not response.is_successful():
                return response

            size = (garden.get_rows(), garden.get_cols())
            return await self._mirror(user_id, TransactionResponse.ok(size), self.sync_helper.resize_garden,
                                      size[0], size[1], self._ground_id(), now, {})

    async def shrink(self, user_id: str, dimension: str, now: Optional[float] = None) -> TransactionResponse:
        """
        Removes the last row or column. Decorations in it go back to the inventory as blueprints;
        plants and ground are lost.
        Payload: {"size": (rows, cols), "discarded": [Plot], "refunded": Counter of blueprint names}
        """

        user_id = str(user_id)
        now = TimeHelper.get_current_timestamp() if now is None else now

        async with self.lock_helper.owner_lock(user_id):
            if not await self.sync_helper.ensure_account(user_id):
                return TransactionResponse.fail(CLOUD_UNAVAILABLE_MESSAGE)
            garden = self.game_state_helper.get_garden(user_id)
            inventory = self.game_state_helper.get_inventory(user_id)

            if dimension == ROW:
                response = garden.remove_row()
            elif dimension == COLUMN:
                response = garden.remove_column()
            else:
                return TransactionResponse.fail(f"Unknown dimension '{dimension}'. Use 'row' or 'column'.")
            if not response.is_successful():
                return response

            refunds: Dict[str, int] = {}
            refunded_names: Counter = Counter()
            for plot in response.payload:
                if plot.get_item_subtype() != ItemSubtype.DECORATION:
                    continue
                use_response = plot.item.use(self.catalog)
                if not use_response.is_successful():
                    self.logger.log(f"Could not refund {plot.item.item_data.name}: {use_response.first_error()}",
                                    "WARNING")
                    continue
                blueprint = use_response.payload["new_template"]
                if inventory.add_item(blueprint, 1).is_successful():
                    refunds[blueprint.id] = refunds.get(blueprint.id, 0) + 1
                    refunded_names[blueprint.name] += 1

            size = (garden.get_rows(), garden.get_cols())
            summary = TransactionResponse.ok({"size": size, "discarded": response.payload, "refunded": refunded_names})
            return await self._mirror(user_id, summary, self.sync_helper.resize_garden,
                                      size[0], size[1], self._ground_id(), now, refunds)

    async def swap(self, user_id: str, first: Tuple[int, int], second: Tuple[int, int]) -> TransactionResponse:
        user_id = str(user_id)

        async with self.lock_helper.owner_lock(user_id):
            if not await self.sync_helper.ensure_account(user_id):
                return TransactionResponse.fail(CLOUD_UNAVAILABLE_MESSAGE)
            garden = self.game_state_helper.get_garden(user_id)

            response = garden.swap_plots(tuple(first), tuple(second))
            if not response.is_successful():
                return response
            return await self._mirror(user_id, response, self.sync_helper.swap_plots, tuple(first), tuple(second))

    def list_ready_plots(self, user_id: str, now: Optional[float] = None) -> List[Tuple[int, int]]:
        now = TimeHelper.get_current_timestamp() if now is None else now
        garden = self.get_garden(user_id)
        return [garden.get_plot_position(plot) for row in garden.get_plots() for plot in row
                if plot.is_ready(now, self.instant_grow)]

    def set_icon(self, user_id: str, icon: str) -> TransactionResponse:
        icon = icon.strip()
        if not icon or len(icon) > 32:
            return TransactionResponse.fail("Icon must be between 1 and 32 characters")
        self.game_state_helper.get_profile(user_id).icon = icon
        self.game_state_helper.save_user(str(user_id))
        return TransactionResponse.ok(icon)

    def set_username(self, user_id: str, username: str) -> TransactionResponse:
        username = username.strip()
        if not username or len(username) > 32:
            return TransactionResponse.fail("Username must be between 1 and 32 characters")
        self.game_state_helper.get_profile(user_id).username = username
        self.game_state_helper.save_user(str(user_id))
        return TransactionResponse.ok(username)
