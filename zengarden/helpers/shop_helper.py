from typing import Dict, List, Optional

from ..models import ItemList, Store, TransactionResponse
from .game_state_helper import GameStateHelper
from .lock_helper import LockHelper
from .logging_helper import LoggingHelper
from .sync_helper import CLOUD_UNAVAILABLE_MESSAGE, RESYNC_MESSAGE, SyncHelper
from .time_helper import TimeHelper


class ShopHelper:
    """Buying, selling and restocking against each player's private copy of the stores."""

    def __init__(self, game_state_helper: GameStateHelper, sync_helper: SyncHelper, lock_helper: LockHelper,
                 logger: Optional[LoggingHelper] = None):
        self.game_state_helper = game_state_helper
        self.sync_helper = sync_helper
        self.lock_helper = lock_helper
        self.logger = logger or LoggingHelper()

    def get_store(self, user_id: str, store_id: int) -> TransactionResponse:
        store = self.game_state_helper.get_store(user_id, store_id)
        if store is None:
            return TransactionResponse.fail(f"Store {store_id} does not exist")
        return TransactionResponse.ok(store)

    def list_stores(self, user_id: str) -> Dict[int, Store]:
        return self.game_state_helper.get_stores(user_id)

    async def _mirror(self, user_id: str, response: TransactionResponse, operation, *args) -> TransactionResponse:
        self.game_state_helper.save_user(user_id)
        if not await self.sync_helper.run(user_id, operation, *args):
            return TransactionResponse.fail(RESYNC_MESSAGE)
        return response

    async def buy(self, user_id: str, store_id: int, item_ref: str, quantity: int) -> TransactionResponse:
        """Payload as Store.buy_item_from_store, plus "total_cost"."""

        user_id = str(user_id)
        async with self.lock_helper.owner_lock(user_id):
            if not await self.sync_helper.ensure_account(user_id):
                return TransactionResponse.fail(CLOUD_UNAVAILABLE_MESSAGE)

            store_response = self.get_store(user_id, store_id)
            if not store_response.is_successful():
                return store_response
            store: Store = store_response.payload
            inventory = self.game_state_helper.get_inventory(user_id)

            gold_before = inventory.get_gold()
            response = store.buy_item_from_store(inventory, item_ref, quantity)
            if not response.is_successful():
                return response

            total_cost = gold_before - response.payload["final_gold"]
            response.payload["total_cost"] = total_cost
            identifier = response.payload["purchased_item"].item_data.id
            return await self._mirror(user_id, response, self.sync_helper.purchase,
                                      store_id, identifier, quantity, total_cost)

    async def sell(self, user_id: str, store_id: int, item_ref: str, quantity: int) -> TransactionResponse:
        """Payload as Store.sell_item_to_store, plus "total_earnings"."""

        user_id = str(user_id)
        async with self.lock_helper.owner_lock(user_id):
            if not await self.sync_helper.ensure_account(user_id):
                return TransactionResponse.fail(CLOUD_UNAVAILABLE_MESSAGE)

            store_response = self.get_store(user_id, store_id)
            if not store_response.is_successful():
                return store_response
            store: Store = store_response.payload
            inventory = self.game_state_helper.get_inventory(user_id)

            gold_before = inventory.get_gold()
            response = store.sell_item_to_store(inventory, item_ref, quantity)
            if not response.is_successful():
                return response

            total_earnings = response.payload["final_gold"] - gold_before
            response.payload["total_earnings"] = total_earnings
            identifier = response.payload["store_item"].item_data.id
            return await self._mirror(user_id, response, self.sync_helper.sale,
                                      store_id, identifier, quantity, total_earnings)

    @staticmethod
    def _quantities(items: ItemList) -> Dict[str, int]:
        return {item.item_data.id: item.quantity for item in items.get_all_items()}

    async def _restock_locked(self, user_id: str, store: Store, now: float, force: bool) -> TransactionResponse:
        before = self._quantities(store.get_items())
        response = store.restock_store(now=now) if force else store.restock_if_needed(now)
        if not response.is_successful():
            return response

        after = self._quantities(store.get_items())
        added = {identifier: quantity - before.get(identifier, 0)
                 for identifier, quantity in after.items() if quantity > before.get(identifier, 0)}
        response = TransactionResponse.ok(added)
        return await self._mirror(user_id, response, self.sync_helper.restock,
                                  store.get_store_id(), added, store.get_restock_time())

    async def restock(self, user_id: str, store_id: int, now: Optional[float] = None,
                      force: bool = False) -> TransactionResponse:
        """
        Restocks one store. Without force the store's timer must have elapsed.
        Payload: {item id: quantity added}
        """

        user_id = str(user_id)
        now = TimeHelper.get_current_timestamp() if now is None else now
        async with self.lock_helper.owner_lock(user_id):
            if not await self.sync_helper.ensure_account(user_id):
                return TransactionResponse.fail(CLOUD_UNAVAILABLE_MESSAGE)

            store_response = self.get_store(user_id, store_id)
            if not store_response.is_successful():
                return store_response
            return await self._restock_locked(user_id, store_response.payload, now, force)

    async def restock_due_stores(self, now: Optional[float] = None) -> List[str]:
        """Restocks every loaded store whose timer has elapsed. Returns "user:store" keys that restocked."""

        now = TimeHelper.get_current_timestamp() if now is None else now
        restocked = []
        for (user_id, store_id), store in self.game_state_helper.get_loaded_stores().items():
            if now < store.get_restock_time() or not store.needs_restock():
                continue
            async with self.lock_helper.owner_lock(user_id):
                if not await self.sync_helper.ensure_account(user_id):
                    continue
                # A resync may have swapped the store object.
                current = self.game_state_helper.get_store(user_id, store_id)
                response = await self._restock_locked(user_id, current, now, force=False)
            if response.is_successful():
                restocked.append(f"{user_id}:{store_id}")
        if restocked:
            self.logger.log(f"Restocked {len(restocked)} store(s): {', '.join(restocked)}", "INFO")
        return restocked

    async def set_gold(self, user_id: str, gold: int) -> TransactionResponse:
        """Admin override of a player's balance. Payload: the new balance."""

        if not isinstance(gold, int) or isinstance(gold, bool) or gold < 0:
            return TransactionResponse.fail(f"Invalid gold amount: {gold}")

        user_id = str(user_id)
        async with self.lock_helper.owner_lock(user_id):
            if not await self.sync_helper.ensure_account(user_id):
                return TransactionResponse.fail(CLOUD_UNAVAILABLE_MESSAGE)

            self.game_state_helper.get_inventory(user_id).gold = gold
            self.logger.log(f"Gold for user {user_id} set to {gold}.", "INFO")
            return await self._mirror(user_id, TransactionResponse.ok(gold), self.sync_helper.set_gold, gold)
